"""
Orquestrador da geocodificação: cache → gazetteer local → Nominatim.

Cada etapa é tentada em sequência e encerra o fluxo quando resolve o
endereço.  O resultado é sempre um :data:`~saomanuel_geo.modelos.RespostaGeocodificacao`;
nenhuma falha de resolução é levantada como exceção.

TTLs aplicados ao gravar no cache:

============================  ==========
Resultado do gazetteer local  7 dias
Resultado do Nominatim        24 horas
Não encontrado / inválido     5 minutos
Falha de rede / timeout       não grava
============================  ==========
"""

import logging
import math

from saomanuel_geo.cache import CacheGeocodificacao
from saomanuel_geo.config import TTL_LOCAL_MS, TTL_NEGATIVO_MS, TTL_REMOTO_MS
from saomanuel_geo.gazetteer import Gazetteer
from saomanuel_geo.modelos import (
    Falha,
    Metadados,
    NaoEncontrado,
    RespostaGeocodificacao,
    Sucesso,
    TipoErro,
    resposta_de_dict,
)
from saomanuel_geo.normalizacao import normalizar_texto
from saomanuel_geo.remoto import BuscaRemota, GeocodificadorRemoto

log = logging.getLogger(__name__)

METODO_LOCAL = "local"
METODO_REMOTO = "nominatim"
METODO_REVERSO = "nominatim_reverso"

MSG_NAO_ENCONTRADO = (
    "Não foi possível geocodificar o endereço. Verifique se ele fica em São Manuel/SP."
)
MSG_ENTRADA_VAZIA = "Informe um endereço para geocodificar."
MSG_COORDENADAS_INVALIDAS = "Coordenadas inválidas."
MSG_REVERSO_NAO_ENCONTRADO = "Coordenadas não encontradas em São Manuel/SP."

SUGESTOES_NAO_ENCONTRADO: tuple[str, ...] = (
    "Confira a grafia do nome da rua.",
    "Informe o número do imóvel (ex.: Rua Principal, 150).",
    "Use o nome completo do logradouro, sem abreviações.",
    "Tente um ponto de referência próximo (praça, escola, hospital).",
)
SUGESTOES_REDE: tuple[str, ...] = ("Tente novamente em alguns instantes.",)


def _chave_reversa(lat: float, lng: float) -> str:
    """Chave de cache das consultas reversas, com hemisfério explícito.

    A normalização da chave troca pontuação por espaço, então o sinal vira
    sufixo (``S``/``N``, ``W``/``E``) para não colidir entre hemisférios.
    """
    hemisferio_lat = "S" if lat < 0 else "N"
    hemisferio_lng = "W" if lng < 0 else "E"
    return f"reverse:{abs(lat):.6f}{hemisferio_lat},{abs(lng):.6f}{hemisferio_lng}"


class ResolvedorEnderecos:
    """Resolve endereços e coordenadas de São Manuel/SP.

    Args:
        cache:     Instância de cache compartilhada (injetada, nunca global).
        gazetteer: Tabela local de logradouros. Padrão: :class:`Gazetteer`.
        remoto:    Adaptador do Nominatim. Padrão: :class:`GeocodificadorRemoto`.
    """

    def __init__(
        self,
        cache: CacheGeocodificacao,
        gazetteer: Gazetteer | None = None,
        remoto: GeocodificadorRemoto | None = None,
    ) -> None:
        self.cache = cache
        self.gazetteer = gazetteer if gazetteer is not None else Gazetteer()
        self.remoto = remoto if remoto is not None else GeocodificadorRemoto()

    # ------------------------------------------------------------------ cache

    def _ler_cache(self, chave: str) -> RespostaGeocodificacao | None:
        dados = self.cache.get(chave)
        if dados is None:
            return None
        try:
            resposta = resposta_de_dict(dados)
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            log.warning("[CACHE] Entrada ilegível para '%s', descartada: %s", chave, exc)
            self.cache.delete(chave)
            return None
        taxa = self.cache.get_stats().hit_rate
        return resposta.marcar_cache(taxa)

    def _gravar_cache(self, chave: str, resposta: RespostaGeocodificacao, ttl: float) -> None:
        if isinstance(resposta, Falha) and not resposta.cacheavel:
            log.debug("[CACHE] Falha de rede não armazenada: %s", chave)
            return
        self.cache.set(chave, resposta.para_dict(), ttl)

    # ----------------------------------------------------------------- direta

    def geocodificar(self, endereco: str, usar_cache: bool = True) -> RespostaGeocodificacao:
        """Converte um endereço em coordenadas.

        Com ``usar_cache=False`` o cache não é lido nem gravado.
        """
        if usar_cache:
            em_cache = self._ler_cache(endereco)
            if em_cache is not None:
                return em_cache

        resposta, ttl = self._resolver(endereco)
        if usar_cache:
            self._gravar_cache(endereco, resposta, ttl)
        return resposta

    def _resolver(self, endereco: str) -> tuple[RespostaGeocodificacao, float]:
        if not normalizar_texto(endereco or ""):
            return Falha(TipoErro.ENTRADA_INVALIDA, MSG_ENTRADA_VAZIA), TTL_NEGATIVO_MS

        local = self.gazetteer.localizar(endereco)
        if not isinstance(local, NaoEncontrado):
            log.info("[LOCAL] '%s' → (%.6f, %.6f)", endereco, local.lat, local.lng)
            metadados = Metadados(
                total_resultados=1,
                resultados_filtrados=1,
                metodo_busca=METODO_LOCAL,
            )
            return Sucesso(local, metadados), TTL_LOCAL_MS

        log.debug("[LOCAL] Sem correspondência para '%s'; tentando Nominatim", endereco)
        busca = self.remoto.buscar(endereco)
        return self._responder_remoto(busca, METODO_REMOTO, MSG_NAO_ENCONTRADO)

    @staticmethod
    def _responder_remoto(
        busca: BuscaRemota, metodo: str, msg_nao_encontrado: str
    ) -> tuple[RespostaGeocodificacao, float]:
        metadados = Metadados(
            total_resultados=busca.total_resultados,
            resultados_filtrados=busca.resultados_filtrados,
            metodo_busca=metodo,
            variacoes_tentadas=busca.variacoes_tentadas,
        )
        resultado = busca.resultado
        if not isinstance(resultado, NaoEncontrado):
            return Sucesso(resultado, metadados), TTL_REMOTO_MS

        if resultado.tipo is TipoErro.REDE:
            falha = Falha(TipoErro.REDE, resultado.motivo, SUGESTOES_REDE, metadados)
            return falha, 0

        if resultado.tipo is not TipoErro.NAO_ENCONTRADO:
            log.info("[REMOTO] %s (%s)", resultado.motivo, resultado.tipo.value)
        falha = Falha(
            TipoErro.NAO_ENCONTRADO,
            msg_nao_encontrado,
            SUGESTOES_NAO_ENCONTRADO,
            metadados,
        )
        return falha, TTL_NEGATIVO_MS

    # ---------------------------------------------------------------- reversa

    def geocodificar_reverso(self, lat: float, lng: float) -> RespostaGeocodificacao:
        """Converte coordenadas em endereço (cache → Nominatim reverse)."""
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return Falha(TipoErro.ENTRADA_INVALIDA, MSG_COORDENADAS_INVALIDAS)

        chave = _chave_reversa(lat, lng)
        em_cache = self._ler_cache(chave)
        if em_cache is not None:
            return em_cache

        busca = self.remoto.reverso(lat, lng)
        resposta, ttl = self._responder_remoto(
            busca, METODO_REVERSO, MSG_REVERSO_NAO_ENCONTRADO
        )
        self._gravar_cache(chave, resposta, ttl)
        return resposta
