"""
Cache de geocodificação com TTL, despejo LRU e persistência durável.

Reduz chamadas repetidas ao Nominatim.  Regras:

- chave = :func:`~saomanuel_geo.normalizacao.normalizar_texto` do endereço, então
  ``"Rua Principal 150"`` e ``"RUA   PRINCIPAL 150"`` caem na mesma entrada;
- entrada expirada (``agora > armazenado_em + ttl``) é logicamente ausente;
- cheio, o cache remove a entrada com menor ``armazenado_em`` antes de inserir;
- após cada mutação o snapshot inteiro é gravado no armazenamento durável;
  falhas de leitura/escrita são registradas e ignoradas (nunca propagam).

O armazenamento segue o contrato mínimo ``obter_item/definir_item/remover_item``
(:class:`Armazenamento`); :class:`ArmazenamentoArquivo` grava um JSON por chave.
"""

import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol

from saomanuel_geo.config import (
    CACHE_DIR,
    CAPACIDADE_CACHE,
    CHAVE_ARMAZENAMENTO,
    HORA_MS,
    INTERVALO_LIMPEZA_S,
    TTL_PADRAO_MS,
)
from saomanuel_geo.normalizacao import normalizar_texto

log = logging.getLogger(__name__)


# ===========================================================================
# Armazenamento durável
# ===========================================================================


class Armazenamento(Protocol):
    def obter_item(self, chave: str) -> str | None: ...

    def definir_item(self, chave: str, valor: str) -> None: ...

    def remover_item(self, chave: str) -> None: ...


class ArmazenamentoMemoria:
    """Armazenamento volátil, útil em testes e em processos sem disco."""

    def __init__(self) -> None:
        self.itens: dict[str, str] = {}

    def obter_item(self, chave: str) -> str | None:
        return self.itens.get(chave)

    def definir_item(self, chave: str, valor: str) -> None:
        self.itens[chave] = valor

    def remover_item(self, chave: str) -> None:
        self.itens.pop(chave, None)


class ArmazenamentoArquivo:
    """Um arquivo ``<diretorio>/<chave>.json`` por chave, gravado atomicamente."""

    def __init__(self, diretorio: Path = CACHE_DIR) -> None:
        self.diretorio = Path(diretorio)

    def _caminho(self, chave: str) -> Path:
        return self.diretorio / f"{chave}.json"

    def obter_item(self, chave: str) -> str | None:
        caminho = self._caminho(chave)
        if not caminho.exists():
            return None
        return caminho.read_text(encoding="utf-8")

    def definir_item(self, chave: str, valor: str) -> None:
        self.diretorio.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.diretorio, prefix=f".{chave}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(valor)
            os.replace(tmp, self._caminho(chave))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def remover_item(self, chave: str) -> None:
        self._caminho(chave).unlink(missing_ok=True)


# ===========================================================================
# Entradas e estatísticas
# ===========================================================================


@dataclass
class EntradaCache:
    valor: Any
    armazenado_em: float
    ttl: float

    def expirada(self, agora: float) -> bool:
        return agora > self.armazenado_em + self.ttl

    def para_dict(self) -> dict[str, Any]:
        return {"valor": self.valor, "armazenado_em": self.armazenado_em, "ttl": self.ttl}


@dataclass(frozen=True)
class EstatisticasCache:
    hits: int
    misses: int
    size: int
    hit_rate: float  # percentual, 0-100


def _agora_ms() -> float:
    return time.time() * 1000


# ===========================================================================
# Cache
# ===========================================================================


class CacheGeocodificacao:
    """Cache chave/valor com TTL por entrada, capacidade fixa e persistência.

    Args:
        armazenamento: Destino do snapshot. ``None`` mantém o cache só em memória.
        capacidade:    Máximo de entradas vivas.
        ttl_padrao:    TTL em ms quando :meth:`set` não recebe um.
        chave_armazenamento: Chave do snapshot no armazenamento.
        relogio:       Função que retorna o instante atual em milissegundos.
    """

    def __init__(
        self,
        armazenamento: Armazenamento | None = None,
        capacidade: int = CAPACIDADE_CACHE,
        ttl_padrao: float = TTL_PADRAO_MS,
        chave_armazenamento: str = CHAVE_ARMAZENAMENTO,
        relogio: Callable[[], float] = _agora_ms,
    ) -> None:
        if capacidade < 1:
            raise ValueError("capacidade deve ser >= 1")
        self._armazenamento = armazenamento
        self._capacidade = capacidade
        self._ttl_padrao = ttl_padrao
        self._chave_armazenamento = chave_armazenamento
        self._relogio = relogio
        self._entradas: dict[str, EntradaCache] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.RLock()
        self._timer: threading.Timer | None = None

        self._carregar()

    # ------------------------------------------------------------------ chaves

    @staticmethod
    def gerar_chave(endereco: str) -> str:
        return normalizar_texto(endereco)

    # -------------------------------------------------------------- operações

    def get(self, endereco: str) -> Any | None:
        """Valor vivo para ``endereco`` ou ``None`` (conta hit/miss)."""
        chave = self.gerar_chave(endereco)
        with self._lock:
            entrada = self._entradas.get(chave)
            if entrada is None:
                self._misses += 1
                return None

            if entrada.expirada(self._relogio()):
                del self._entradas[chave]
                self._misses += 1
                self._salvar()
                return None

            self._hits += 1
            log.debug("[CACHE HIT] %s (%.1f%% hit rate)", endereco, self._taxa_acerto())
            return entrada.valor

    def set(self, endereco: str, valor: Any, ttl: float | None = None) -> None:
        """Armazena ``valor``; nunca levanta por falha de persistência."""
        chave = self.gerar_chave(endereco)
        ttl = self._ttl_padrao if ttl is None else ttl
        with self._lock:
            if chave not in self._entradas and len(self._entradas) >= self._capacidade:
                self._despejar_mais_antiga()

            self._entradas[chave] = EntradaCache(valor, self._relogio(), ttl)
            log.debug("[CACHE SET] %s (TTL: %.1fh)", endereco, ttl / HORA_MS)
            self._salvar()

    def delete(self, endereco: str) -> bool:
        chave = self.gerar_chave(endereco)
        with self._lock:
            if self._entradas.pop(chave, None) is None:
                return False
            log.debug("[CACHE DELETE] %s", endereco)
            self._salvar()
            return True

    def has(self, endereco: str) -> bool:
        """Existe entrada viva? Não altera as estatísticas."""
        chave = self.gerar_chave(endereco)
        with self._lock:
            entrada = self._entradas.get(chave)
            if entrada is None:
                return False
            if entrada.expirada(self._relogio()):
                del self._entradas[chave]
                self._salvar()
                return False
            return True

    def clear(self) -> None:
        """Esvazia o cache, zera contadores e remove o snapshot."""
        with self._lock:
            self._entradas.clear()
            self._hits = 0
            self._misses = 0
            if self._armazenamento is not None:
                try:
                    self._armazenamento.remover_item(self._chave_armazenamento)
                except OSError as exc:
                    log.warning("[CACHE] Erro ao remover snapshot: %s", exc)
        log.info("[CACHE CLEAR] Cache limpo completamente")

    def keys(self) -> list[str]:
        agora = self._relogio()
        with self._lock:
            return [k for k, e in self._entradas.items() if not e.expirada(agora)]

    def get_stats(self) -> EstatisticasCache:
        with self._lock:
            return EstatisticasCache(
                hits=self._hits,
                misses=self._misses,
                size=len(self._entradas),
                hit_rate=self._taxa_acerto(),
            )

    def get_size_in_bytes(self) -> int:
        """Tamanho do snapshot persistido, em bytes (0 se indisponível)."""
        if self._armazenamento is None:
            return 0
        try:
            bruto = self._armazenamento.obter_item(self._chave_armazenamento)
        except (OSError, ValueError):
            return 0
        return len(bruto.encode("utf-8")) if bruto else 0

    def __len__(self) -> int:
        return len(self._entradas)

    # ------------------------------------------------------ limpeza / despejo

    def limpar_expirados(self) -> int:
        """Remove entradas expiradas e regrava o snapshot. Retorna quantas saíram."""
        agora = self._relogio()
        with self._lock:
            expiradas = [k for k, e in self._entradas.items() if e.expirada(agora)]
            for chave in expiradas:
                del self._entradas[chave]
            if expiradas:
                log.info("[CACHE CLEANUP] %d entradas expiradas removidas", len(expiradas))
                self._salvar()
        return len(expiradas)

    def iniciar_limpeza_periodica(self, intervalo: float = INTERVALO_LIMPEZA_S) -> None:
        """Agenda :meth:`limpar_expirados` a cada ``intervalo`` segundos (thread daemon)."""
        with self._lock:
            self.parar_limpeza_periodica()
            self._timer = threading.Timer(intervalo, self._tique, args=(intervalo,))
            self._timer.daemon = True
            self._timer.start()

    def parar_limpeza_periodica(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _tique(self, intervalo: float) -> None:
        self.limpar_expirados()
        with self._lock:
            if self._timer is not None:
                self.iniciar_limpeza_periodica(intervalo)

    def _despejar_mais_antiga(self) -> None:
        chave = min(self._entradas, key=lambda k: self._entradas[k].armazenado_em)
        del self._entradas[chave]
        log.debug("[CACHE EVICT] Removida entrada mais antiga: %s", chave)

    def _taxa_acerto(self) -> float:
        total = self._hits + self._misses
        return (self._hits / total) * 100 if total > 0 else 0.0

    # ------------------------------------------------------------ persistência

    def _salvar(self) -> None:
        if self._armazenamento is None:
            return
        try:
            serializado = json.dumps(
                [[k, e.para_dict()] for k, e in self._entradas.items()],
                ensure_ascii=False,
            )
            self._armazenamento.definir_item(self._chave_armazenamento, serializado)
        except (OSError, TypeError, ValueError) as exc:
            log.warning("[CACHE] Erro ao salvar snapshot: %s", exc)

    def _carregar(self) -> None:
        if self._armazenamento is None:
            return
        try:
            bruto = self._armazenamento.obter_item(self._chave_armazenamento)
        except OSError as exc:
            log.warning("[CACHE] Erro ao ler snapshot: %s", exc)
            return
        except ValueError as exc:
            # bytes que não decodificam como UTF-8
            self._descartar_snapshot(exc)
            return
        if not bruto:
            return

        try:
            entradas: dict[str, EntradaCache] = {}
            for chave, dados in json.loads(bruto):
                entradas[str(chave)] = EntradaCache(
                    valor=dados["valor"],
                    armazenado_em=float(dados["armazenado_em"]),
                    ttl=float(dados["ttl"]),
                )
        except (ValueError, TypeError, KeyError) as exc:
            self._descartar_snapshot(exc)
            return

        self._entradas = entradas
        while len(self._entradas) > self._capacidade:
            self._despejar_mais_antiga()
        self.limpar_expirados()
        log.info("[CACHE] Carregadas %d entradas do armazenamento", len(self._entradas))

    def _descartar_snapshot(self, motivo: Exception) -> None:
        log.warning("[CACHE] Snapshot corrompido, iniciando vazio: %s", motivo)
        try:
            self._armazenamento.remover_item(self._chave_armazenamento)
        except OSError as exc:
            log.warning("[CACHE] Erro ao remover snapshot: %s", exc)
