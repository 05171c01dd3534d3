"""
Gazetteer local de São Manuel: resolve endereços conhecidos sem rede.

Cada entrada da tabela é um :class:`Logradouro` (faixa de numeração com
interpolação linear entre as extremidades) ou um :class:`PontoFixo`
(marco sem número).  As expressões regulares operam sobre o texto já
normalizado por :func:`~saomanuel_geo.normalizacao.normalizar_texto`
(minúsculas, sem acentos, sem pontuação), e a primeira entrada que casar vence.

Política para números fora da faixa: **rejeição estrita**.  Um número fora de
``[numero_inicial, numero_final]`` não satisfaz o logradouro e a busca continua
nas entradas seguintes (e, sem outra correspondência, cai no Nominatim).
Nenhuma coordenada é "grampeada" na extremidade.
"""

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from saomanuel_geo.config import ESTADO, MARGEM_BBOX_LOCAL, MUNICIPIO, PAIS, UF
from saomanuel_geo.modelos import (
    Coordenadas,
    Metodo,
    NaoEncontrado,
    Precisao,
    ResultadoGeo,
)
from saomanuel_geo.normalizacao import extrair_numero, normalizar_texto

log = logging.getLogger(__name__)


# ===========================================================================
# Tipos da tabela
# ===========================================================================


@dataclass(frozen=True)
class Intervalo:
    """Extremidades conhecidas de um logradouro numerado."""

    numero_inicial: int
    lat_inicial: float
    lng_inicial: float
    numero_final: int
    lat_final: float
    lng_final: float

    def __post_init__(self) -> None:
        if self.numero_final <= self.numero_inicial:
            raise ValueError(
                f"Faixa inválida: {self.numero_inicial}..{self.numero_final}"
            )

    def contem(self, numero: int) -> bool:
        return self.numero_inicial <= numero <= self.numero_final

    def interpolar(self, numero: int) -> tuple[float, float]:
        """Interpola ``(lat, lng)`` para ``numero``, arredondando em 6 casas."""
        razao = (numero - self.numero_inicial) / (
            self.numero_final - self.numero_inicial
        )
        lat = self.lat_inicial + (self.lat_final - self.lat_inicial) * razao
        lng = self.lng_inicial + (self.lng_final - self.lng_inicial) * razao
        return round(lat, 6), round(lng, 6)


@dataclass(frozen=True)
class Logradouro:
    """Rua numerada; ``padrao`` deve ter o grupo nomeado ``numero``."""

    padrao: re.Pattern[str]
    rua: str
    intervalo: Intervalo
    bairro: str
    cidade: str = MUNICIPIO

    def __post_init__(self) -> None:
        if "numero" not in self.padrao.groupindex:
            raise ValueError(f"Padrão de '{self.rua}' sem grupo 'numero'")


@dataclass(frozen=True)
class PontoFixo:
    """Marco conhecido (praça, hospital...) resolvido para um ponto fixo."""

    padrao: re.Pattern[str]
    rua: str
    lat: float
    lng: float
    bairro: str
    cidade: str = MUNICIPIO


PadraoEndereco = Logradouro | PontoFixo


def _rua(padrao: str, rua: str, intervalo: Intervalo, bairro: str) -> Logradouro:
    return Logradouro(re.compile(padrao), rua, intervalo, bairro)


def _ponto(padrao: str, rua: str, lat: float, lng: float, bairro: str) -> PontoFixo:
    return PontoFixo(re.compile(padrao), rua, lat, lng, bairro)


# ===========================================================================
# Tabela de endereços de São Manuel
#
# Coordenadas das extremidades levantadas manualmente sobre o OpenStreetMap.
# A Plinio Aristides Targa foi calibrada em campo (nº 487 → -22.744832, -48.569672).
# ===========================================================================

_CENTRO_PRINCIPAL = Intervalo(1, -22.7325, -48.5725, 2000, -22.7295, -48.5685)
_QUINZE = Intervalo(1, -22.7320, -48.5715, 800, -22.7300, -48.5695)
_CORONEL = Intervalo(1, -22.7330, -48.5710, 1000, -22.7290, -48.5670)
_SAO_PAULO = Intervalo(1, -22.7355, -48.5745, 800, -22.7325, -48.5705)
_VILA_NOVA = Intervalo(1, -22.7295, -48.5695, 600, -22.7265, -48.5655)
_BELA_VISTA = Intervalo(1, -22.7370, -48.5755, 600, -22.7340, -48.5715)
_NACOES = Intervalo(1, -22.7280, -48.5680, 500, -22.7250, -48.5640)
_AMERICA = Intervalo(1, -22.7355, -48.5705, 600, -22.7325, -48.5665)
_PLINIO = Intervalo(1, -22.7500, -48.5744, 973, -22.739664, -48.564944)

ENDERECOS_SAO_MANUEL: tuple[PadraoEndereco, ...] = (
    _rua(r"^(?:rua )?principal (?P<numero>\d+)$", "Rua Principal", _CENTRO_PRINCIPAL, "Centro"),
    _rua(r"^(?:(?:avenida|av) )?brasil (?P<numero>\d+)$", "Avenida Brasil", _CENTRO_PRINCIPAL, "Centro"),
    _rua(
        r"^(?:rua )?(?:quinze|15)(?: de novembro)? (?P<numero>\d+)$",
        "Rua Quinze de Novembro",
        _QUINZE,
        "Centro",
    ),
    _rua(r"^(?:rua )?coronel (?P<numero>\d+)$", "Rua Coronel", _CORONEL, "Centro"),
    _rua(r"^(?:rua )?sao paulo (?P<numero>\d+)$", "Rua São Paulo", _SAO_PAULO, "Jardim São Paulo"),
    _rua(r"^(?:rua )?vila nova (?P<numero>\d+)$", "Rua Vila Nova", _VILA_NOVA, "Vila Nova"),
    _rua(
        r"^(?:rua )?bela vista (?P<numero>\d+)$",
        "Rua Bela Vista",
        _BELA_VISTA,
        "Residencial Bela Vista",
    ),
    _rua(
        r"^(?:rua )?(?:das )?nacoes (?P<numero>\d+)$",
        "Rua das Nações",
        _NACOES,
        "Parque das Nações",
    ),
    _rua(r"^(?:rua )?america (?P<numero>\d+)$", "Rua América", _AMERICA, "Jardim América"),
    # variações de digitação comuns ("Artistides", sem o nome do meio)
    _rua(
        r"^(?:rua )?plinio (?:ar?tistides |aristides )?targa (?P<numero>\d+)$",
        "Rua Plinio Aristides Targa",
        _PLINIO,
        "Centro",
    ),
    # pontos de interesse, sem número
    _ponto(r"^praca (?:da )?matriz$", "Praça da Matriz", -22.7318, -48.5703, "Centro"),
    _ponto(r"^(?:centro|praca)$", "Centro", -22.7311, -48.5706, "Centro"),
    _ponto(r"^(?:hospital|ubs|saude)$", "Hospital Municipal", -22.7325, -48.5710, "Centro"),
    _ponto(r"^(?:escola|colegio)$", "Escola Municipal", -22.7305, -48.5708, "Centro"),
)


# ===========================================================================
# Montagem do resultado
# ===========================================================================


def _endereco_exibicao(rua: str, bairro: str, cidade: str, numero: int | None) -> str:
    base = f"{rua}, {numero}" if numero is not None else rua
    return f"{base}, {bairro}, {cidade} - {UF}, {PAIS}"


def _montar_resultado(
    lat: float,
    lng: float,
    padrao: PadraoEndereco,
    numero: int | None,
    precisao: Precisao,
    metodo: Metodo,
) -> ResultadoGeo:
    m = MARGEM_BBOX_LOCAL
    return ResultadoGeo(
        coordenadas=Coordenadas(lat, lng),
        endereco_exibicao=_endereco_exibicao(
            padrao.rua, padrao.bairro, padrao.cidade, numero
        ),
        bairro=padrao.bairro,
        cidade=padrao.cidade,
        estado=ESTADO,
        bbox=(lat - m, lat + m, lng - m, lng + m),
        precisao=precisao,
        metodo=metodo,
    )


# ===========================================================================
# Gazetteer
# ===========================================================================


class Gazetteer:
    """Resolve endereços contra uma tabela ordenada de padrões.

    Args:
        tabela: Entradas avaliadas na ordem declarada; a primeira que casar vence.
        correspondencia_parcial: Se ``True``, quando nenhum padrão casa, tenta
            casar pelas palavras significativas do nome da rua.
    """

    def __init__(
        self,
        tabela: Sequence[PadraoEndereco] = ENDERECOS_SAO_MANUEL,
        correspondencia_parcial: bool = False,
    ) -> None:
        self.tabela = tuple(tabela)
        self.correspondencia_parcial = correspondencia_parcial

    def localizar(self, entrada: str) -> ResultadoGeo | NaoEncontrado:
        """Resolve ``entrada`` para coordenadas sem nenhuma chamada de rede."""
        normalizado = normalizar_texto(entrada)
        log.debug("[LOCAL] Procurando: '%s'", normalizado)

        if normalizado:
            resultado = self._casar_exato(normalizado)
            if resultado is None and self.correspondencia_parcial:
                resultado = self._casar_parcial(normalizado)
            if resultado is not None:
                log.info(
                    "[LOCAL] '%s' → %s (%.6f, %.6f)",
                    entrada,
                    resultado.metodo.value,
                    resultado.lat,
                    resultado.lng,
                )
                return resultado

        log.debug("[LOCAL] Nenhum padrão correspondente para '%s'", normalizado)
        return NaoEncontrado(
            motivo="Endereço não encontrado no banco de dados local."
        )

    def _casar_exato(self, normalizado: str) -> ResultadoGeo | None:
        for padrao in self.tabela:
            match = padrao.padrao.match(normalizado)
            if not match:
                continue

            if isinstance(padrao, PontoFixo):
                return _montar_resultado(
                    padrao.lat,
                    padrao.lng,
                    padrao,
                    None,
                    Precisao.MEDIA,
                    Metodo.PONTO_FIXO,
                )

            numero = int(match.group("numero"))
            if not padrao.intervalo.contem(numero):
                log.debug(
                    "[LOCAL] %s nº %d fora da faixa %d..%d, seguindo",
                    padrao.rua,
                    numero,
                    padrao.intervalo.numero_inicial,
                    padrao.intervalo.numero_final,
                )
                continue

            lat, lng = padrao.intervalo.interpolar(numero)
            return _montar_resultado(
                lat, lng, padrao, numero, Precisao.ALTA, Metodo.INTERPOLACAO
            )
        return None

    def _casar_parcial(self, normalizado: str) -> ResultadoGeo | None:
        """Casa pelas palavras com mais de 3 letras do nome da rua.

        Ruas com até duas palavras significativas exigem todas; as demais, 75%.
        Empates são resolvidos pelo nome mais longo (mais específico).
        """
        numero = extrair_numero(normalizado)
        candidatos: list[tuple[float, int, PadraoEndereco]] = []

        for padrao in self.tabela:
            if isinstance(padrao, Logradouro) != (numero is not None):
                continue
            if numero is not None and not padrao.intervalo.contem(numero):
                continue

            nome = normalizar_texto(padrao.rua)
            nome = re.sub(r"^(?:rua|avenida|praca) ", "", nome)
            principais = [p for p in nome.split() if len(p) > 3]
            if not principais:
                continue

            acertos = sum(1 for p in principais if p in normalizado)
            confianca = acertos / len(principais)
            minimo = 1.0 if len(principais) <= 2 else 0.75
            if confianca >= minimo:
                candidatos.append((confianca, len(padrao.rua), padrao))

        if not candidatos:
            return None

        confianca, _, melhor = max(candidatos, key=lambda c: (c[0], c[1]))
        log.info(
            "[LOCAL] Correspondência parcial: %s (%.0f%%)", melhor.rua, confianca * 100
        )
        if isinstance(melhor, Logradouro):
            lat, lng = melhor.intervalo.interpolar(numero)
            return _montar_resultado(
                lat, lng, melhor, numero, Precisao.MEDIA, Metodo.PARCIAL
            )
        return _montar_resultado(
            melhor.lat, melhor.lng, melhor, None, Precisao.MEDIA, Metodo.PARCIAL
        )


_PADRAO = Gazetteer()


def localizar(entrada: str) -> ResultadoGeo | NaoEncontrado:
    """Atalho para :meth:`Gazetteer.localizar` com a tabela padrão."""
    return _PADRAO.localizar(entrada)
