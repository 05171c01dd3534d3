"""
Testes para saomanuel_geo.cache.

Cobre:
- ida e volta de valores (inclusive None) e colisão por normalização da chave
- expiração por TTL (1000 ms → vivo; 1001 ms → ausente)
- despejo LRU por instante de inserção ao exceder a capacidade
- taxa de acerto (hits/misses)
- persistência: snapshot recarregado, expirados descartados na carga
- snapshot corrompido (JSON inválido ou bytes fora de UTF-8) e falhas do
  armazenamento nunca propagam
- ArmazenamentoArquivo gravando em disco
- limpeza periódica (timer) e limpar_expirados
"""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from saomanuel_geo.cache import (
    ArmazenamentoArquivo,
    ArmazenamentoMemoria,
    CacheGeocodificacao,
)

CHAVE = "geocoding-cache"


@pytest.fixture
def cache(armazenamento: ArmazenamentoMemoria, relogio) -> CacheGeocodificacao:
    return CacheGeocodificacao(armazenamento=armazenamento, relogio=relogio)


# ===========================================================================
# Operações básicas
# ===========================================================================


class TestOperacoesBasicas:
    @pytest.mark.parametrize(
        "valor",
        [{"lat": -22.73, "lng": -48.57}, [1, 2, 3], "texto", 42, None],
    )
    def test_ida_e_volta(self, cache: CacheGeocodificacao, valor: object) -> None:
        """set seguido de get devolve o mesmo valor, inclusive None."""
        cache.set("Rua Principal 150", valor)
        assert cache.get("Rua Principal 150") == valor
        assert cache.has("Rua Principal 150")

    def test_chave_normalizada(self, cache: CacheGeocodificacao) -> None:
        """Caixa, acentos e espaços extras caem na mesma entrada."""
        cache.set("Rua Principal 150", "x")
        assert cache.get("RUA   PRINCIPAL   150") == "x"
        assert cache.keys() == ["rua principal 150"]

    def test_get_ausente(self, cache: CacheGeocodificacao) -> None:
        """Chave nunca gravada retorna None e conta miss."""
        assert cache.get("nada") is None
        assert cache.get_stats().misses == 1

    def test_delete(self, cache: CacheGeocodificacao) -> None:
        """delete remove e informa se havia entrada."""
        cache.set("a", 1)
        assert cache.delete("A") is True
        assert cache.delete("a") is False
        assert not cache.has("a")

    def test_has_nao_altera_estatisticas(self, cache: CacheGeocodificacao) -> None:
        """has não conta hit nem miss."""
        cache.set("a", 1)
        cache.has("a")
        cache.has("b")
        stats = cache.get_stats()
        assert (stats.hits, stats.misses) == (0, 0)

    def test_clear(
        self, cache: CacheGeocodificacao, armazenamento: ArmazenamentoMemoria
    ) -> None:
        """clear esvazia, zera contadores e remove o snapshot."""
        cache.set("a", 1)
        cache.get("a")
        cache.clear()
        stats = cache.get_stats()
        assert (stats.hits, stats.misses, stats.size) == (0, 0, 0)
        assert CHAVE not in armazenamento.itens

    def test_capacidade_invalida(self) -> None:
        """Capacidade menor que 1 é rejeitada."""
        with pytest.raises(ValueError):
            CacheGeocodificacao(capacidade=0)


# ===========================================================================
# TTL
# ===========================================================================


class TestTTL:
    def test_expira_apos_ttl(self, cache: CacheGeocodificacao, relogio) -> None:
        """Vivo até exatamente o TTL; ausente 1 ms depois."""
        cache.set("k", "v", 1000)
        assert cache.get("k") == "v"
        relogio.avancar(1000)
        assert cache.get("k") == "v"
        relogio.avancar(1)
        assert cache.get("k") is None
        assert cache.has("k") is False

    def test_expirada_conta_miss_e_some(self, cache: CacheGeocodificacao, relogio) -> None:
        """get em entrada expirada conta miss e a remove da tabela."""
        cache.set("k", "v", 10)
        relogio.avancar(11)
        cache.get("k")
        assert cache.get_stats().misses == 1
        assert len(cache) == 0

    def test_ttl_padrao_24h(self, cache: CacheGeocodificacao, relogio) -> None:
        """Sem TTL explícito vale 24 horas."""
        cache.set("k", "v")
        relogio.avancar(24 * 60 * 60 * 1000)
        assert cache.has("k")
        relogio.avancar(1)
        assert not cache.has("k")

    def test_keys_ignora_expiradas(self, cache: CacheGeocodificacao, relogio) -> None:
        """keys lista apenas entradas vivas."""
        cache.set("curta", 1, 10)
        cache.set("longa", 2, 10_000)
        relogio.avancar(11)
        assert cache.keys() == ["longa"]

    def test_limpar_expirados(self, cache: CacheGeocodificacao, relogio) -> None:
        """limpar_expirados remove e retorna quantas entradas saíram."""
        cache.set("a", 1, 10)
        cache.set("b", 2, 10)
        cache.set("c", 3, 10_000)
        relogio.avancar(11)
        assert cache.limpar_expirados() == 2
        assert len(cache) == 1


# ===========================================================================
# Despejo LRU
# ===========================================================================


class TestDespejo:
    def test_101_chaves_em_capacidade_100(self, cache: CacheGeocodificacao, relogio) -> None:
        """A primeira chave inserida sai; a 101ª fica; tamanho segue 100."""
        for i in range(101):
            cache.set(f"endereco {i}", i)
            relogio.avancar(1)

        assert len(cache) == 100
        assert not cache.has("endereco 0")
        assert cache.has("endereco 100")
        assert cache.has("endereco 1")

    def test_sobrescrever_nao_despeja(self, armazenamento, relogio) -> None:
        """Regravar uma chave existente com o cache cheio não remove outra."""
        cache = CacheGeocodificacao(armazenamento, capacidade=2, relogio=relogio)
        cache.set("a", 1)
        relogio.avancar(1)
        cache.set("b", 2)
        relogio.avancar(1)
        cache.set("a", 3)
        assert sorted(cache.keys()) == ["a", "b"]
        assert cache.get("a") == 3


# ===========================================================================
# Estatísticas
# ===========================================================================


class TestEstatisticas:
    def test_taxa_50(self, cache: CacheGeocodificacao) -> None:
        """2 hits + 2 misses ⇒ 50%."""
        cache.set("a", 1)
        cache.get("a")
        cache.get("a")
        cache.get("x")
        cache.get("y")
        assert cache.get_stats().hit_rate == 50

    def test_taxa_zero_sem_consultas(self, cache: CacheGeocodificacao) -> None:
        """Nenhuma consulta ⇒ 0%."""
        assert cache.get_stats().hit_rate == 0

    def test_tamanho_em_bytes(self, cache: CacheGeocodificacao) -> None:
        """Tamanho reflete o snapshot persistido."""
        assert cache.get_size_in_bytes() == 0
        cache.set("a", "São Manuel")
        assert cache.get_size_in_bytes() > 0

    def test_tamanho_sem_armazenamento(self) -> None:
        """Cache só em memória reporta 0 bytes."""
        cache = CacheGeocodificacao()
        cache.set("a", 1)
        assert cache.get_size_in_bytes() == 0


# ===========================================================================
# Persistência
# ===========================================================================


class TestPersistencia:
    def test_snapshot_recarregado(self, armazenamento, relogio) -> None:
        """Nova instância sobre o mesmo armazenamento vê as entradas gravadas."""
        CacheGeocodificacao(armazenamento, relogio=relogio).set("Rua X 1", {"ok": True})
        novo = CacheGeocodificacao(armazenamento, relogio=relogio)
        assert novo.get("rua x 1") == {"ok": True}

    def test_expirados_descartados_na_carga(self, armazenamento, relogio) -> None:
        """Entradas expiradas no snapshot não sobrevivem à carga."""
        original = CacheGeocodificacao(armazenamento, relogio=relogio)
        original.set("curta", 1, 10)
        original.set("longa", 2, 10_000)
        relogio.avancar(11)
        novo = CacheGeocodificacao(armazenamento, relogio=relogio)
        assert novo.keys() == ["longa"]
        assert [k for k, _ in json.loads(armazenamento.itens[CHAVE])] == ["longa"]

    def test_snapshot_corrompido_inicia_vazio(self, armazenamento, relogio) -> None:
        """JSON inválido não levanta: cache começa vazio e o item é removido."""
        armazenamento.itens[CHAVE] = "{isto não é json"
        cache = CacheGeocodificacao(armazenamento, relogio=relogio)
        assert len(cache) == 0
        assert CHAVE not in armazenamento.itens

    def test_snapshot_com_formato_errado(self, armazenamento, relogio) -> None:
        """JSON válido mas com estrutura inesperada também é descartado."""
        armazenamento.itens[CHAVE] = json.dumps([["k", {"valor": 1}]])
        cache = CacheGeocodificacao(armazenamento, relogio=relogio)
        assert len(cache) == 0

    def test_falha_de_escrita_nao_propaga(self, relogio) -> None:
        """Erro do armazenamento (ex.: disco cheio) é engolido por set."""
        armazenamento = MagicMock()
        armazenamento.obter_item.return_value = None
        armazenamento.definir_item.side_effect = OSError("No space left on device")
        cache = CacheGeocodificacao(armazenamento, relogio=relogio)

        cache.set("a", 1)

        assert cache.get("a") == 1

    def test_falha_de_leitura_inicia_vazio(self, relogio) -> None:
        """Erro ao ler o snapshot não impede a construção."""
        armazenamento = MagicMock()
        armazenamento.obter_item.side_effect = OSError("permissão negada")
        cache = CacheGeocodificacao(armazenamento, relogio=relogio)
        assert len(cache) == 0

    def test_valor_nao_serializavel_nao_propaga(self, cache: CacheGeocodificacao) -> None:
        """Valor sem representação JSON fica em memória sem levantar."""
        cache.set("a", {1, 2})
        assert cache.get("a") == {1, 2}


class TestArmazenamentoArquivo:
    def test_grava_e_le(self, tmp_path: Path) -> None:
        """Item gravado em <dir>/<chave>.json e lido de volta."""
        arm = ArmazenamentoArquivo(tmp_path / "cache")
        arm.definir_item("geocoding-cache", "[]")
        assert (tmp_path / "cache" / "geocoding-cache.json").read_text() == "[]"
        assert arm.obter_item("geocoding-cache") == "[]"

    def test_ausente_e_remocao(self, tmp_path: Path) -> None:
        """Item inexistente é None; remover inexistente não levanta."""
        arm = ArmazenamentoArquivo(tmp_path)
        assert arm.obter_item("nada") is None
        arm.remover_item("nada")

    def test_cache_sobre_arquivo(self, tmp_path: Path, relogio) -> None:
        """Cache persistido em disco sobrevive a nova instância."""
        arm = ArmazenamentoArquivo(tmp_path)
        CacheGeocodificacao(arm, relogio=relogio).set("Praça da Matriz", [1, 2])
        assert CacheGeocodificacao(arm, relogio=relogio).get("praca da matriz") == [1, 2]
        assert not list(tmp_path.glob("*.tmp"))

    def test_snapshot_fora_de_utf8(self, tmp_path: Path, relogio) -> None:
        """Bytes que não decodificam como UTF-8: cache vazio e arquivo removido."""
        arquivo = tmp_path / f"{CHAVE}.json"
        arquivo.write_bytes(b"\xff\xfe\x00garbage")

        cache = CacheGeocodificacao(ArmazenamentoArquivo(tmp_path), relogio=relogio)

        assert len(cache) == 0
        assert not arquivo.exists()
        cache.set("a", 1)
        assert CacheGeocodificacao(ArmazenamentoArquivo(tmp_path), relogio=relogio).get("a") == 1

    def test_tamanho_com_snapshot_fora_de_utf8(self, tmp_path: Path, relogio) -> None:
        """get_size_in_bytes devolve 0 em vez de levantar."""
        cache = CacheGeocodificacao(ArmazenamentoArquivo(tmp_path), relogio=relogio)
        (tmp_path / f"{CHAVE}.json").write_bytes(b"\xff\xfe\x00garbage")

        assert cache.get_size_in_bytes() == 0


# ===========================================================================
# Limpeza periódica
# ===========================================================================


class TestLimpezaPeriodica:
    def test_tique_limpa_e_reagenda(self, cache: CacheGeocodificacao, relogio) -> None:
        """Cada tique remove expirados e arma um novo timer."""
        cache.set("a", 1, 10)
        relogio.avancar(11)
        cache.iniciar_limpeza_periodica(3600)
        try:
            primeiro = cache._timer
            cache._tique(3600)
            assert len(cache) == 0
            assert cache._timer is not None
            assert cache._timer is not primeiro
        finally:
            cache.parar_limpeza_periodica()
        assert cache._timer is None

    def test_parado_nao_reagenda(self, cache: CacheGeocodificacao) -> None:
        """Depois de parar, um tique atrasado não reativa o timer."""
        cache.iniciar_limpeza_periodica(3600)
        cache.parar_limpeza_periodica()
        cache._tique(3600)
        assert cache._timer is None
