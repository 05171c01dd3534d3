"""
Testes para saomanuel_geo.lote.

Cobre:
- colunas de saída LAT/LON/METODO/PRECISAO/SUCESSO
- endereços repetidos resolvidos uma única vez
- linhas vazias ou não resolvidas mantidas com SUCESSO=False
- coluna ausente → ValueError
- geocodificar_csv grava o CSV de saída
"""

from pathlib import Path
from unittest.mock import MagicMock

import pandas as pd
import pytest

from saomanuel_geo.cache import CacheGeocodificacao
from saomanuel_geo.lote import geocodificar_csv, geocodificar_lote
from saomanuel_geo.modelos import NaoEncontrado
from saomanuel_geo.remoto import BuscaRemota, GeocodificadorRemoto
from saomanuel_geo.resolvedor import ResolvedorEnderecos


@pytest.fixture
def remoto() -> MagicMock:
    remoto = MagicMock(spec=GeocodificadorRemoto)
    remoto.buscar.return_value = BuscaRemota(NaoEncontrado("nada"), 7)
    return remoto


@pytest.fixture
def resolvedor(remoto, relogio) -> ResolvedorEnderecos:
    return ResolvedorEnderecos(cache=CacheGeocodificacao(relogio=relogio), remoto=remoto)


# ===========================================================================
# geocodificar_lote
# ===========================================================================


def test_colunas_de_saida(resolvedor) -> None:
    """Endereços locais recebem coordenadas, método e precisão."""
    df = pd.DataFrame(
        {
            "ENDERECO": ["Rua Plinio Aristides Targa 487", "Praça da Matriz"],
            "ID": [1, 2],
        }
    )

    resultado = geocodificar_lote(df, resolvedor)

    assert list(resultado["ID"]) == [1, 2]
    assert resultado["LAT"].iloc[0] == pytest.approx(-22.744832)
    assert resultado["LON"].iloc[0] == pytest.approx(-48.569672)
    assert list(resultado["METODO"]) == ["interpolation", "fixed_point"]
    assert list(resultado["PRECISAO"]) == ["high", "medium"]
    assert resultado["SUCESSO"].all()


def test_nao_altera_dataframe_de_entrada(resolvedor) -> None:
    """O DataFrame recebido não ganha colunas."""
    df = pd.DataFrame({"ENDERECO": ["Praça da Matriz"]})
    geocodificar_lote(df, resolvedor)
    assert list(df.columns) == ["ENDERECO"]


def test_repetidos_resolvidos_uma_vez(resolvedor, remoto) -> None:
    """Endereço repetido consulta o Nominatim uma única vez."""
    df = pd.DataFrame({"ENDERECO": ["Rua Desconhecida 10"] * 3})

    resultado = geocodificar_lote(df, resolvedor, usar_cache=False)

    assert remoto.buscar.call_count == 1
    assert len(resultado) == 3
    assert not resultado["SUCESSO"].any()
    assert list(resultado["METODO"]) == ["not_found"] * 3


def test_linhas_vazias_mantidas(resolvedor, remoto) -> None:
    """NaN e strings vazias ficam com SUCESSO=False e sem consulta."""
    df = pd.DataFrame({"ENDERECO": [None, "  ", "Praça da Matriz"]})

    resultado = geocodificar_lote(df, resolvedor)

    assert list(resultado["SUCESSO"]) == [False, False, True]
    assert pd.isna(resultado["LAT"].iloc[0])
    remoto.buscar.assert_not_called()


def test_coluna_configuravel(resolvedor) -> None:
    """Outra coluna pode ser usada como fonte dos endereços."""
    df = pd.DataFrame({"LOCAL": ["Praça da Matriz"]})
    resultado = geocodificar_lote(df, resolvedor, coluna="LOCAL")
    assert resultado["SUCESSO"].iloc[0]


def test_coluna_ausente(resolvedor) -> None:
    """Coluna inexistente levanta ValueError com as colunas disponíveis."""
    df = pd.DataFrame({"OUTRA": ["x"]})
    with pytest.raises(ValueError, match="ENDERECO"):
        geocodificar_lote(df, resolvedor)


# ===========================================================================
# geocodificar_csv
# ===========================================================================


def test_geocodificar_csv(tmp_path: Path, resolvedor) -> None:
    """Lê o CSV de entrada e grava o de saída com as novas colunas."""
    entrada = tmp_path / "ocorrencias.csv"
    saida = tmp_path / "saida" / "ocorrencias_geo.csv"
    pd.DataFrame({"ENDERECO": ["Praça da Matriz", "Hospital"]}).to_csv(
        entrada, index=False
    )

    geocodificar_csv(entrada, saida, resolvedor)

    lido = pd.read_csv(saida, encoding="utf-8-sig")
    assert {"LAT", "LON", "METODO", "PRECISAO", "SUCESSO"} <= set(lido.columns)
    assert lido["SUCESSO"].all()
