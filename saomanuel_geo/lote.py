"""
Geocodificação em lote de uma coluna de endereços (CSV → CSV).

Cada endereço distinto passa uma única vez pelo
:class:`~saomanuel_geo.resolvedor.ResolvedorEnderecos` (que já consulta o
cache), e o resultado é mapeado de volta para todas as linhas.  Colunas
adicionadas: ``LAT``, ``LON``, ``METODO``, ``PRECISAO``, ``SUCESSO``.
Linhas não resolvidas permanecem no DataFrame com ``SUCESSO = False``.
"""

import logging
import re
from pathlib import Path

import pandas as pd
from tqdm import tqdm

from saomanuel_geo.modelos import RespostaGeocodificacao, Sucesso
from saomanuel_geo.resolvedor import ResolvedorEnderecos

log = logging.getLogger(__name__)

COLUNA_PADRAO = "ENDERECO"
COLUNAS_SAIDA = ("LAT", "LON", "METODO", "PRECISAO", "SUCESSO")


def _texto_limpo(valor: object) -> str:
    """Remove nulos/NaN e espaços extras."""
    if valor is None:
        return ""
    try:
        if bool(pd.isna(valor)):
            return ""
    except (TypeError, ValueError):
        pass
    texto = str(valor).strip()
    if texto.lower() == "nan":
        return ""
    return re.sub(r"\s+", " ", texto)


def _linha_resultado(resposta: RespostaGeocodificacao) -> tuple:
    if isinstance(resposta, Sucesso):
        r = resposta.resultado
        return (r.lat, r.lng, r.metodo.value, r.precisao.value, True)
    return (None, None, resposta.tipo.value, None, False)


def geocodificar_lote(
    df: pd.DataFrame,
    resolvedor: ResolvedorEnderecos,
    coluna: str = COLUNA_PADRAO,
    usar_cache: bool = True,
) -> pd.DataFrame:
    """Geocodifica ``df[coluna]`` e retorna uma cópia com as colunas de resultado.

    Raises:
        ValueError: se ``coluna`` não existir em ``df``.
    """
    if coluna not in df.columns:
        raise ValueError(
            f"Coluna '{coluna}' ausente. Colunas disponíveis: {list(df.columns)}"
        )

    df = df.copy()
    enderecos = df[coluna].map(_texto_limpo)
    unicos = [e for e in enderecos.unique() if e]
    log.info("[LOTE] %d endereço(s) distinto(s) em %d linha(s)", len(unicos), len(df))

    resultados: dict[str, tuple] = {}
    for endereco in tqdm(unicos, desc="Geocodificando", unit="end"):
        resposta = resolvedor.geocodificar(endereco, usar_cache=usar_cache)
        resultados[endereco] = _linha_resultado(resposta)
        if not resposta.sucesso:
            log.warning("[LOTE] Não geocodificado: '%s'", endereco)

    vazio = (None, None, None, None, False)
    for i, nome in enumerate(COLUNAS_SAIDA):
        df[nome] = enderecos.map(lambda e, i=i: resultados.get(e, vazio)[i])
    df["SUCESSO"] = df["SUCESSO"].astype(bool)

    n_ok = int(df["SUCESSO"].sum())
    log.info("[LOTE] Geocodificados com sucesso: %d/%d", n_ok, len(df))
    distribuicao = df["METODO"].fillna("vazio").value_counts(dropna=False).to_dict()
    log.info("[LOTE] Distribuição METODO: %s", distribuicao)
    return df


def geocodificar_csv(
    entrada: Path,
    saida: Path,
    resolvedor: ResolvedorEnderecos,
    coluna: str = COLUNA_PADRAO,
) -> pd.DataFrame:
    """Lê ``entrada``, geocodifica e grava ``saida`` (UTF-8 com BOM)."""
    df = pd.read_csv(entrada)
    df_geo = geocodificar_lote(df, resolvedor, coluna=coluna)
    saida.parent.mkdir(parents=True, exist_ok=True)
    df_geo.to_csv(saida, index=False, encoding="utf-8-sig")
    log.info("[LOTE] Salvo: %s (%d linhas)", saida, len(df_geo))
    return df_geo
