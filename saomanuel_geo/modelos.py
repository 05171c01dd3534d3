"""
Tipos de resultado da geocodificação.

A resposta de :meth:`~saomanuel_geo.resolvedor.ResolvedorEnderecos.geocodificar`
é sempre um :data:`RespostaGeocodificacao` (``Sucesso`` ou ``Falha``), nunca
uma exceção.  ``para_dict()`` produz o formato JSON consumido pela camada HTTP::

    {"success": true, "data": {...}, "metadata": {...}}
    {"success": false, "error": "...", "suggestions": [...], "metadata": {...}}
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Precisao(str, Enum):
    ALTA = "high"
    MEDIA = "medium"
    BAIXA = "low"


class Metodo(str, Enum):
    INTERPOLACAO = "interpolation"
    PONTO_FIXO = "fixed_point"
    PARCIAL = "partial_match"
    REMOTO = "remote"


class TipoErro(str, Enum):
    """Taxonomia de falhas.

    ``FORA_DA_AREA`` e ``PAYLOAD_INVALIDO`` só existem internamente (logs);
    antes de chegar ao chamador são convertidos em ``NAO_ENCONTRADO``.
    """

    NAO_ENCONTRADO = "not_found"
    FORA_DA_AREA = "out_of_bounds"
    PAYLOAD_INVALIDO = "malformed_upstream"
    REDE = "network"
    ENTRADA_INVALIDA = "invalid_input"


@dataclass(frozen=True)
class Coordenadas:
    """Par WGS84 em graus decimais."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            raise ValueError(f"Coordenadas não finitas: ({self.lat}, {self.lng})")

    def para_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


#: ``(sul, norte, oeste, leste)``
BoundingBox = tuple[float, float, float, float]


@dataclass(frozen=True)
class ResultadoGeo:
    """Resultado de uma resolução bem-sucedida. Imutável após construído."""

    coordenadas: Coordenadas
    endereco_exibicao: str
    bairro: str
    cidade: str
    estado: str
    bbox: BoundingBox
    precisao: Precisao
    metodo: Metodo

    @property
    def lat(self) -> float:
        return self.coordenadas.lat

    @property
    def lng(self) -> float:
        return self.coordenadas.lng

    def para_dict(self) -> dict[str, Any]:
        return {
            "coordinates": self.coordenadas.para_dict(),
            "displayAddress": self.endereco_exibicao,
            "neighborhood": self.bairro,
            "city": self.cidade,
            "state": self.estado,
            "boundingBox": list(self.bbox),
            "precision": self.precisao.value,
            "method": self.metodo.value,
        }

    @classmethod
    def de_dict(cls, dados: dict[str, Any]) -> "ResultadoGeo":
        coords = dados["coordinates"]
        sul, norte, oeste, leste = (float(v) for v in dados["boundingBox"])
        return cls(
            coordenadas=Coordenadas(float(coords["lat"]), float(coords["lng"])),
            endereco_exibicao=dados.get("displayAddress", ""),
            bairro=dados.get("neighborhood", ""),
            cidade=dados.get("city", ""),
            estado=dados.get("state", ""),
            bbox=(sul, norte, oeste, leste),
            precisao=Precisao(dados["precision"]),
            metodo=Metodo(dados["method"]),
        )


@dataclass(frozen=True)
class NaoEncontrado:
    """Sinal de ausência de um tier (gazetteer ou remoto).

    ``precisa_fallback`` indica ao orquestrador que vale tentar o próximo tier.
    """

    motivo: str = ""
    tipo: TipoErro = TipoErro.NAO_ENCONTRADO
    precisa_fallback: bool = True


@dataclass(frozen=True)
class Metadados:
    total_resultados: int = 0
    resultados_filtrados: int = 0
    metodo_busca: str = ""
    variacoes_tentadas: int = 0
    cached: bool = False
    taxa_acerto_cache: float = 0.0

    def para_dict(self) -> dict[str, Any]:
        return {
            "totalResults": self.total_resultados,
            "filteredResults": self.resultados_filtrados,
            "searchMethod": self.metodo_busca,
            "variationsTried": self.variacoes_tentadas,
            "cached": self.cached,
            "cacheHitRate": self.taxa_acerto_cache,
        }

    @classmethod
    def de_dict(cls, dados: dict[str, Any] | None) -> "Metadados":
        dados = dados or {}
        return cls(
            total_resultados=int(dados.get("totalResults", 0)),
            resultados_filtrados=int(dados.get("filteredResults", 0)),
            metodo_busca=str(dados.get("searchMethod", "")),
            variacoes_tentadas=int(dados.get("variationsTried", 0)),
            cached=bool(dados.get("cached", False)),
            taxa_acerto_cache=float(dados.get("cacheHitRate", 0.0)),
        )


@dataclass(frozen=True)
class Sucesso:
    resultado: ResultadoGeo
    metadados: Metadados = field(default_factory=Metadados)

    @property
    def sucesso(self) -> bool:
        return True

    def marcar_cache(self, taxa_acerto: float) -> "Sucesso":
        """Retorna cópia anotada como vinda do cache."""
        return replace(
            self,
            metadados=replace(
                self.metadados, cached=True, taxa_acerto_cache=taxa_acerto
            ),
        )

    def para_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "data": self.resultado.para_dict(),
            "metadata": self.metadados.para_dict(),
        }


@dataclass(frozen=True)
class Falha:
    tipo: TipoErro
    mensagem: str
    sugestoes: tuple[str, ...] = ()
    metadados: Metadados = field(default_factory=Metadados)

    @property
    def sucesso(self) -> bool:
        return False

    @property
    def cacheavel(self) -> bool:
        """Falhas de rede nunca vão para o cache."""
        return self.tipo is not TipoErro.REDE

    def marcar_cache(self, taxa_acerto: float) -> "Falha":
        return replace(
            self,
            metadados=replace(
                self.metadados, cached=True, taxa_acerto_cache=taxa_acerto
            ),
        )

    def para_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.mensagem,
            "errorKind": self.tipo.value,
            "suggestions": list(self.sugestoes),
            "metadata": self.metadados.para_dict(),
        }


RespostaGeocodificacao = Sucesso | Falha


def resposta_de_dict(dados: dict[str, Any]) -> RespostaGeocodificacao:
    """Reconstrói uma resposta a partir do formato de :meth:`para_dict`.

    Usado para reidratar entradas lidas do cache persistido.

    Raises:
        KeyError, ValueError, TypeError: se ``dados`` não tiver o formato esperado.
    """
    metadados = Metadados.de_dict(dados.get("metadata"))
    if dados["success"]:
        return Sucesso(
            resultado=ResultadoGeo.de_dict(dados["data"]), metadados=metadados
        )
    return Falha(
        tipo=TipoErro(dados.get("errorKind", TipoErro.NAO_ENCONTRADO.value)),
        mensagem=str(dados.get("error", "")),
        sugestoes=tuple(dados.get("suggestions") or ()),
        metadados=metadados,
    )


@dataclass(frozen=True)
class CandidatoRemoto:
    """Um item da resposta do Nominatim já com coordenadas numéricas."""

    lat: float
    lng: float
    nome_exibicao: str
    endereco: dict[str, str] = field(default_factory=dict)
    bbox: BoundingBox | None = None
    importancia: float = 0.0
    tipo: str = ""

    @property
    def cidade(self) -> str:
        for chave in ("city", "town", "municipality", "village"):
            valor = self.endereco.get(chave)
            if valor:
                return valor
        return ""

    @property
    def bairro(self) -> str:
        return self.endereco.get("neighbourhood") or self.endereco.get("suburb") or ""
