"""
Fallback remoto: geocodificação via Nominatim (OpenStreetMap).

Usado só quando o gazetteer local não resolve o endereço.  Para cada variação
gerada por :func:`~saomanuel_geo.normalizacao.gerar_variacoes_busca`, em ordem
e uma de cada vez, consulta o Nominatim restrito à viewbox do município.  Para
na primeira variação com pelo menos um resultado dentro do geofence.

Respeita o ToS do Nominatim (1 req/s): todas as chamadas, diretas e reversas,
passam pelo mesmo :class:`~geopy.extra.rate_limiter.RateLimiter`.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable

from geopy.adapters import RequestsAdapter
from geopy.exc import GeocoderParseError, GeocoderServiceError, GeocoderTimedOut
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from saomanuel_geo.config import (
    CENTRO_LAT,
    CENTRO_LNG,
    LIMIAR_DEDUPLICACAO,
    NOMINATIM_DELAY,
    NOMINATIM_DOMAIN,
    NOMINATIM_IDIOMA,
    NOMINATIM_LIMITE,
    NOMINATIM_PAIS,
    NOMINATIM_TIMEOUT,
    NOMINATIM_USER_AGENT,
    NOMINATIM_VIEWBOX,
    RAIO_GEOFENCE,
)
from saomanuel_geo.modelos import (
    CandidatoRemoto,
    Coordenadas,
    Metodo,
    NaoEncontrado,
    Precisao,
    ResultadoGeo,
    TipoErro,
)
from saomanuel_geo.normalizacao import (
    cita_municipio,
    deduplicar_resultados,
    distancia_do_centro,
    encontrar_mais_proximo,
    formatar_endereco,
    gerar_variacoes_busca,
    ordenar_por_relevancia,
    tem_numero,
)

log = logging.getLogger(__name__)

MSG_TIMEOUT = "Timeout na requisição - tente novamente"
MSG_REDE = "Erro ao buscar coordenadas"

#: Falhas do geopy ao interpretar a resposta (JSON ilegível, coordenadas fora
#: de faixa ou não numéricas ao montar o ``Point``)
ERROS_PAYLOAD = (GeocoderParseError, ValueError, TypeError)


@dataclass(frozen=True)
class BuscaRemota:
    """Resultado de uma busca no Nominatim com os números da tentativa."""

    resultado: ResultadoGeo | NaoEncontrado
    variacoes_tentadas: int = 0
    total_resultados: int = 0
    resultados_filtrados: int = 0


def _despachar(metodo: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return metodo(*args, **kwargs)


def _mensagem_erro_rede(exc: Exception) -> str:
    if isinstance(exc, GeocoderTimedOut):
        return MSG_TIMEOUT
    return f"{MSG_REDE}: {exc}"


def _parse_bbox(bruto: Any) -> tuple[float, float, float, float] | None:
    try:
        sul, norte, oeste, leste = (float(v) for v in bruto)
    except (TypeError, ValueError):
        return None
    return (sul, norte, oeste, leste)


def _parse_candidato(loc: Any) -> CandidatoRemoto | None:
    """Converte um ``Location`` do geopy em candidato; ``None`` se o payload for inválido."""
    raw = getattr(loc, "raw", None) or {}
    try:
        lat = float(raw["lat"])
        lng = float(raw["lon"])
    except (KeyError, TypeError, ValueError):
        log.warning("[REMOTO] Payload sem coordenadas numéricas: %r", raw)
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        log.warning("[REMOTO] Coordenadas não finitas: %r", raw)
        return None

    endereco = raw.get("address")
    try:
        importancia = float(raw.get("importance") or 0.0)
    except (TypeError, ValueError):
        importancia = 0.0
    return CandidatoRemoto(
        lat=lat,
        lng=lng,
        nome_exibicao=str(raw.get("display_name") or ""),
        endereco=dict(endereco) if isinstance(endereco, dict) else {},
        bbox=_parse_bbox(raw.get("boundingbox")),
        importancia=importancia,
        tipo=str(raw.get("type") or ""),
    )


def _precisao_remota(candidato: CandidatoRemoto) -> Precisao:
    if candidato.endereco.get("house_number"):
        return Precisao.ALTA
    if candidato.endereco.get("road"):
        return Precisao.MEDIA
    return Precisao.BAIXA


class GeocodificadorRemoto:
    """Adaptador do Nominatim com múltiplas consultas, geofence e ranking.

    Args:
        user_agent: Identificação obrigatória pelo ToS do Nominatim.
        dominio:    Domínio do serviço (instância pública por padrão).
        timeout:    Timeout por requisição, em segundos.
        atraso:     Intervalo mínimo entre requisições, em segundos.
        raio:       Raio do geofence em graus a partir de ``centro``.
        limiar_deduplicacao: Distância em graus abaixo da qual dois resultados
            são considerados o mesmo ponto.
    """

    def __init__(
        self,
        user_agent: str = NOMINATIM_USER_AGENT,
        dominio: str = NOMINATIM_DOMAIN,
        timeout: float = NOMINATIM_TIMEOUT,
        atraso: float = NOMINATIM_DELAY,
        raio: float = RAIO_GEOFENCE,
        limiar_deduplicacao: float = LIMIAR_DEDUPLICACAO,
        centro: tuple[float, float] = (CENTRO_LAT, CENTRO_LNG),
    ) -> None:
        self.raio = raio
        self.limiar_deduplicacao = limiar_deduplicacao
        self.centro = centro
        self.timeout = timeout
        self._geolocator = Nominatim(
            user_agent=user_agent,
            domain=dominio,
            timeout=timeout,
            adapter_factory=RequestsAdapter,
        )
        # max_retries=0 e swallow_exceptions=False: falhas de rede precisam
        # chegar até aqui para não virarem "não encontrado" cacheável.
        self._consultar = RateLimiter(
            _despachar,
            min_delay_seconds=atraso,
            max_retries=0,
            swallow_exceptions=False,
        )

    def dentro_da_area(self, lat: float, lng: float) -> bool:
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return False
        return distancia_do_centro(lat, lng, self.centro) <= self.raio

    # ------------------------------------------------------------- direta

    def buscar(self, endereco: str) -> BuscaRemota:
        """Geocodifica ``endereco`` tentando as variações em ordem."""
        variacoes = gerar_variacoes_busca(endereco)
        validos: list[CandidatoRemoto] = []
        total = 0
        tentadas = 0
        fora_da_area = 0
        invalidos = 0
        ultimo_erro: Exception | None = None

        for variacao in variacoes:
            tentadas += 1
            log.debug("[REMOTO] Variação %d/%d: '%s'", tentadas, len(variacoes), variacao)
            try:
                locais = self._consultar(
                    self._geolocator.geocode,
                    variacao,
                    exactly_one=False,
                    limit=NOMINATIM_LIMITE,
                    addressdetails=True,
                    language=NOMINATIM_IDIOMA,
                    country_codes=NOMINATIM_PAIS,
                    viewbox=NOMINATIM_VIEWBOX,
                    bounded=True,
                    timeout=self.timeout,
                )
            except ERROS_PAYLOAD as exc:
                log.warning("[REMOTO] Resposta inválida para '%s': %s", variacao, exc)
                invalidos += 1
                continue
            except GeocoderServiceError as exc:
                log.warning("[REMOTO] Falha em '%s': %s", variacao, exc)
                ultimo_erro = exc
                continue

            locais = list(locais or [])
            total += len(locais)
            candidatos = [c for c in map(_parse_candidato, locais) if c is not None]
            dentro = [c for c in candidatos if self.dentro_da_area(c.lat, c.lng)]
            invalidos += len(locais) - len(candidatos)
            fora_da_area += len(candidatos) - len(dentro)
            if len(dentro) < len(candidatos):
                log.debug(
                    "[REMOTO] %d resultado(s) fora da área descartado(s)",
                    len(candidatos) - len(dentro),
                )
            if dentro:
                validos.extend(dentro)
                break

        if not validos:
            if ultimo_erro is not None:
                return BuscaRemota(
                    NaoEncontrado(_mensagem_erro_rede(ultimo_erro), TipoErro.REDE, False),
                    tentadas,
                    total,
                )
            if fora_da_area:
                tipo = TipoErro.FORA_DA_AREA
            elif invalidos:
                tipo = TipoErro.PAYLOAD_INVALIDO
            else:
                tipo = TipoErro.NAO_ENCONTRADO
            log.info("[REMOTO] Nada dentro da área para '%s' (%s)", endereco, tipo.value)
            return BuscaRemota(
                NaoEncontrado("Nenhum resultado dentro de São Manuel.", tipo),
                tentadas,
                total,
            )

        unicos = ordenar_por_relevancia(
            deduplicar_resultados(validos, self.limiar_deduplicacao)
        )
        escolhido = unicos[0]
        if not (
            tem_numero(escolhido.nome_exibicao) or cita_municipio(escolhido.nome_exibicao)
        ):
            escolhido = encontrar_mais_proximo(endereco, unicos) or escolhido

        log.info(
            "[REMOTO] '%s' → (%.6f, %.6f) %s",
            endereco,
            escolhido.lat,
            escolhido.lng,
            escolhido.nome_exibicao,
        )
        return BuscaRemota(self._montar(escolhido), tentadas, total, len(unicos))

    def _montar(
        self, candidato: CandidatoRemoto, precisao: Precisao | None = None
    ) -> ResultadoGeo:
        bbox = candidato.bbox or (
            candidato.lat,
            candidato.lat,
            candidato.lng,
            candidato.lng,
        )
        return ResultadoGeo(
            coordenadas=Coordenadas(candidato.lat, candidato.lng),
            endereco_exibicao=candidato.nome_exibicao
            or formatar_endereco(candidato.endereco),
            bairro=candidato.bairro,
            cidade=candidato.cidade,
            estado=candidato.endereco.get("state", ""),
            bbox=bbox,
            precisao=precisao or _precisao_remota(candidato),
            metodo=Metodo.REMOTO,
        )

    # ------------------------------------------------------------ reversa

    def reverso(self, lat: float, lng: float) -> BuscaRemota:
        """Converte coordenadas em endereço (sem gazetteer reverso local)."""
        if not self.dentro_da_area(lat, lng):
            log.info("[REVERSO] (%s, %s) fora de São Manuel", lat, lng)
            return BuscaRemota(
                NaoEncontrado("Coordenadas fora de São Manuel.", TipoErro.FORA_DA_AREA)
            )

        try:
            local = self._consultar(
                self._geolocator.reverse,
                (lat, lng),
                exactly_one=True,
                addressdetails=True,
                language=NOMINATIM_IDIOMA,
                timeout=self.timeout,
            )
        except ERROS_PAYLOAD as exc:
            log.warning("[REVERSO] Resposta inválida para (%s, %s): %s", lat, lng, exc)
            return BuscaRemota(
                NaoEncontrado("Coordenadas não encontradas.", TipoErro.PAYLOAD_INVALIDO), 1
            )
        except GeocoderServiceError as exc:
            log.warning("[REVERSO] Falha em (%s, %s): %s", lat, lng, exc)
            return BuscaRemota(
                NaoEncontrado(_mensagem_erro_rede(exc), TipoErro.REDE, False), 1
            )

        raw = getattr(local, "raw", None) or {}
        endereco = raw.get("address")
        if not isinstance(endereco, dict) or not endereco:
            return BuscaRemota(NaoEncontrado("Coordenadas não encontradas."), 1)

        candidato = CandidatoRemoto(
            lat=lat,
            lng=lng,
            nome_exibicao=str(raw.get("display_name") or formatar_endereco(endereco)),
            endereco=dict(endereco),
            bbox=_parse_bbox(raw.get("boundingbox")),
        )
        resultado = self._montar(candidato, Precisao.MEDIA)
        log.info("[REVERSO] (%s, %s) → %s", lat, lng, resultado.endereco_exibicao)
        return BuscaRemota(resultado, 1, 1, 1)
