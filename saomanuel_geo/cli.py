"""
CLI da geocodificação de endereços de São Manuel/SP.

Subcomandos disponíveis::

    saomanuel-geo geocodificar ENDERECO [--sem-cache] [--json]
    saomanuel-geo reverso      LAT LNG [--json]
    saomanuel-geo local        ENDERECO [--parcial]
    saomanuel-geo lote         --entrada CSV [--saida CSV] [--coluna COL]
    saomanuel-geo cache        {stats,chaves,limpar,expirar}
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from saomanuel_geo.config import CACHE_DIR

if TYPE_CHECKING:
    from saomanuel_geo.cache import CacheGeocodificacao
    from saomanuel_geo.modelos import RespostaGeocodificacao
    from saomanuel_geo.resolvedor import ResolvedorEnderecos

log = logging.getLogger(__name__)


# ===========================================================================
# Logging
# ===========================================================================


def _setup_logging(verbose: bool = False) -> None:
    """Configura logging da CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ===========================================================================
# Construção das dependências
# ===========================================================================


def _criar_cache(args: argparse.Namespace) -> "CacheGeocodificacao":
    from saomanuel_geo.cache import ArmazenamentoArquivo, CacheGeocodificacao

    diretorio = Path(getattr(args, "cache_path", None) or CACHE_DIR)
    return CacheGeocodificacao(armazenamento=ArmazenamentoArquivo(diretorio))


def _criar_resolvedor(args: argparse.Namespace) -> "ResolvedorEnderecos":
    from saomanuel_geo.resolvedor import ResolvedorEnderecos

    return ResolvedorEnderecos(cache=_criar_cache(args))


def _imprimir_resposta(resposta: "RespostaGeocodificacao", como_json: bool) -> None:
    if como_json:
        print(json.dumps(resposta.para_dict(), ensure_ascii=False, indent=2))
        return

    meta = resposta.metadados
    if resposta.sucesso:
        r = resposta.resultado
        print(f"\n{r.endereco_exibicao}")
        print(f"  lat/lng:   {r.lat:.6f}, {r.lng:.6f}")
        print(f"  precisão:  {r.precisao.value}")
        print(f"  método:    {r.metodo.value}")
    else:
        print(f"\n{resposta.mensagem}")
        for sugestao in resposta.sugestoes:
            print(f"  - {sugestao}")
    origem = "cache" if meta.cached else meta.metodo_busca or "-"
    print(f"  origem:    {origem}\n")


# ===========================================================================
# Subcomando: geocodificar
# ===========================================================================


def cmd_geocodificar(args: argparse.Namespace) -> int:
    """Geocodifica um endereço (cache → gazetteer local → Nominatim)."""
    resolvedor = _criar_resolvedor(args)
    resposta = resolvedor.geocodificar(args.endereco, usar_cache=not args.sem_cache)
    _imprimir_resposta(resposta, args.json)
    return 0 if resposta.sucesso else 1


# ===========================================================================
# Subcomando: reverso
# ===========================================================================


def cmd_reverso(args: argparse.Namespace) -> int:
    """Converte coordenadas em endereço via Nominatim reverse."""
    resolvedor = _criar_resolvedor(args)
    resposta = resolvedor.geocodificar_reverso(args.lat, args.lng)
    _imprimir_resposta(resposta, args.json)
    return 0 if resposta.sucesso else 1


# ===========================================================================
# Subcomando: local
# ===========================================================================


def cmd_local(args: argparse.Namespace) -> int:
    """Testa um endereço só contra o gazetteer local (sem cache, sem rede)."""
    from saomanuel_geo.gazetteer import Gazetteer
    from saomanuel_geo.modelos import NaoEncontrado
    from saomanuel_geo.normalizacao import normalizar_texto

    gazetteer = Gazetteer(correspondencia_parcial=args.parcial)
    resultado = gazetteer.localizar(args.endereco)

    print(f"\nEntrada:     {args.endereco}")
    print(f"Normalizado: {normalizar_texto(args.endereco)}")
    if isinstance(resultado, NaoEncontrado):
        print(f"Resultado:   {resultado.motivo}\n")
        return 1

    print(f"Resultado:   {resultado.endereco_exibicao}")
    print(f"  lat/lng:   {resultado.lat:.6f}, {resultado.lng:.6f}")
    print(f"  precisão:  {resultado.precisao.value}")
    print(f"  método:    {resultado.metodo.value}\n")
    return 0


# ===========================================================================
# Subcomando: lote
# ===========================================================================


def cmd_lote(args: argparse.Namespace) -> int:
    """Geocodifica uma coluna de endereços de um CSV."""
    from saomanuel_geo.lote import geocodificar_csv

    entrada = Path(args.entrada)
    if not entrada.exists():
        log.error("Arquivo não encontrado: '%s'", entrada)
        return 1
    saida = Path(args.saida) if args.saida else entrada.with_name(f"{entrada.stem}_geo.csv")

    try:
        df_geo = geocodificar_csv(entrada, saida, _criar_resolvedor(args), coluna=args.coluna)
    except ValueError as exc:
        log.error("%s", exc)
        return 1

    print(f"Geocodificado: {saida} ({int(df_geo['SUCESSO'].sum())}/{len(df_geo)} linhas)")
    return 0


# ===========================================================================
# Subcomando: cache
# ===========================================================================


def _fmt_size(n: int) -> str:
    """Formata tamanho em bytes de forma legível."""
    if n >= 1024 * 1024:
        return f"{n / 1024 / 1024:.1f} MB"
    if n >= 1024:
        return f"{n / 1024:.1f} KB"
    return f"{n} B"


def cmd_cache(args: argparse.Namespace) -> int:
    """Inspeciona ou limpa o cache persistido."""
    cache = _criar_cache(args)

    if args.acao == "stats":
        stats = cache.get_stats()
        print(f"\n{'Entradas':<12}  {stats.size}")
        print(f"{'Tamanho':<12}  {_fmt_size(cache.get_size_in_bytes())}")
        print(f"{'Hits':<12}  {stats.hits}")
        print(f"{'Misses':<12}  {stats.misses}")
        print(f"{'Hit rate':<12}  {stats.hit_rate:.1f}%\n")
    elif args.acao == "chaves":
        chaves = cache.keys()
        for chave in sorted(chaves):
            print(chave)
        print(f"\nTotal: {len(chaves)} chave(s).")
    elif args.acao == "limpar":
        n = len(cache)
        cache.clear()
        print(f"{n} entrada(s) removida(s).")
    elif args.acao == "expirar":
        n = cache.limpar_expirados()
        print(f"{n} entrada(s) expirada(s) removida(s).")
    return 0


# ===========================================================================
# Parser argparse
# ===========================================================================


def _build_parser() -> argparse.ArgumentParser:
    """Constrói o parser principal com todos os subcomandos."""
    parser = argparse.ArgumentParser(
        prog="saomanuel-geo",
        description="Geocodificação híbrida de endereços — São Manuel/SP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Exemplos:
  saomanuel-geo geocodificar "Rua Principal, 150"     Resolve um endereço
  saomanuel-geo geocodificar "Praça da Matriz" --json Resposta em JSON
  saomanuel-geo reverso -22.7311 -48.5706            Endereço de um ponto
  saomanuel-geo local "Av Brasil 300" --parcial      Só o gazetteer local
  saomanuel-geo lote --entrada ocorrencias.csv       Geocodifica uma coluna
  saomanuel-geo cache stats                          Estatísticas do cache
""",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Exibe logs de depuração (DEBUG)"
    )
    parser.add_argument(
        "--cache-path",
        dest="cache_path",
        default=None,
        metavar="PATH",
        help=f"Diretório do cache persistido (padrão: {CACHE_DIR})",
    )

    sub = parser.add_subparsers(dest="comando", required=True, metavar="COMANDO")

    # --------------------------------------------------------- geocodificar
    p_geo = sub.add_parser(
        "geocodificar",
        help="Geocodifica um endereço",
        description="Resolve um endereço: cache → gazetteer local → Nominatim.",
    )
    p_geo.add_argument("endereco", metavar="ENDERECO", help="Endereço em texto livre")
    p_geo.add_argument(
        "--sem-cache",
        dest="sem_cache",
        action="store_true",
        help="Ignora o cache (não lê nem grava)",
    )
    p_geo.add_argument("--json", action="store_true", help="Saída em formato JSON")

    # -------------------------------------------------------------- reverso
    p_rev = sub.add_parser(
        "reverso",
        help="Converte coordenadas em endereço",
        description="Geocodificação reversa via Nominatim (com cache).",
    )
    p_rev.add_argument("lat", type=float, metavar="LAT", help="Latitude em graus")
    p_rev.add_argument("lng", type=float, metavar="LNG", help="Longitude em graus")
    p_rev.add_argument("--json", action="store_true", help="Saída em formato JSON")

    # ---------------------------------------------------------------- local
    p_loc = sub.add_parser(
        "local",
        help="Testa um endereço só contra o gazetteer local",
        description="Consulta a tabela de logradouros sem cache e sem rede.",
    )
    p_loc.add_argument("endereco", metavar="ENDERECO", help="Endereço em texto livre")
    p_loc.add_argument(
        "--parcial",
        action="store_true",
        help="Habilita correspondência parcial pelo nome da rua",
    )

    # ----------------------------------------------------------------- lote
    p_lote = sub.add_parser(
        "lote",
        help="Geocodifica uma coluna de endereços de um CSV",
        description="Adiciona LAT, LON, METODO, PRECISAO e SUCESSO ao CSV.",
    )
    p_lote.add_argument("--entrada", required=True, metavar="CSV", help="CSV de entrada")
    p_lote.add_argument(
        "--saida",
        default=None,
        metavar="CSV",
        help="CSV de saída (padrão: <entrada>_geo.csv)",
    )
    p_lote.add_argument(
        "--coluna",
        default="ENDERECO",
        metavar="COL",
        help="Coluna com os endereços (padrão: ENDERECO)",
    )

    # ---------------------------------------------------------------- cache
    p_cache = sub.add_parser(
        "cache",
        help="Inspeciona ou limpa o cache persistido",
        description="stats: contadores; chaves: entradas vivas; "
        "limpar: esvazia tudo; expirar: remove só as expiradas.",
    )
    p_cache.add_argument("acao", choices=["stats", "chaves", "limpar", "expirar"])

    return parser


# ===========================================================================
# Dispatch e entry point
# ===========================================================================

_HANDLER_MAP: dict[str, Callable[[argparse.Namespace], int]] = {
    "geocodificar": cmd_geocodificar,
    "reverso": cmd_reverso,
    "local": cmd_local,
    "lote": cmd_lote,
    "cache": cmd_cache,
}


def main(argv: list[str] | None = None) -> None:
    """Entry point público — chamado por ``python -m saomanuel_geo`` e pelo script ``saomanuel-geo``."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(verbose=args.verbose)

    handler = _HANDLER_MAP.get(args.comando)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(handler(args))
