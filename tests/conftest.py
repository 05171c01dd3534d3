"""
conftest.py — Fixtures e configurações globais para os testes.

Aplicado automaticamente a todos os módulos de teste (autouse=True):
- tqdm substituído por iteração direta (sem saída de progresso nos testes).

Fixtures sob demanda:
- ``relogio``: relógio falso em milissegundos, avançado manualmente.
- ``armazenamento``: armazenamento em memória para o cache.
"""

import pytest

from saomanuel_geo.cache import ArmazenamentoMemoria


@pytest.fixture(autouse=True)
def desabilitar_tqdm(monkeypatch: pytest.MonkeyPatch) -> None:
    """Substitui tqdm por passthrough para suprimir barras de progresso."""
    monkeypatch.setattr(
        "saomanuel_geo.lote.tqdm",
        lambda iterable, **kw: iterable,
    )


class RelogioFalso:
    """Relógio controlado pelo teste; retorna milissegundos."""

    def __init__(self, inicio: float = 1_700_000_000_000.0) -> None:
        self.agora = inicio

    def __call__(self) -> float:
        return self.agora

    def avancar(self, ms: float) -> None:
        self.agora += ms


@pytest.fixture
def relogio() -> RelogioFalso:
    return RelogioFalso()


@pytest.fixture
def armazenamento() -> ArmazenamentoMemoria:
    return ArmazenamentoMemoria()
