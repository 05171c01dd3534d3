"""
Normalização de endereços e utilitários de busca tolerante a erros.

Funções puras, sem estado e sem I/O:

- limpeza de texto (acentos, caixa, pontuação, espaços)
- extração do número predial e do nome da rua
- geração das variações de consulta enviadas ao Nominatim
- deduplicação, ordenação e escolha do candidato mais próximo
"""

import math
import re
import unicodedata
from typing import Iterable, Mapping, Sequence

from saomanuel_geo.config import (
    CENTRO_LAT,
    CENTRO_LNG,
    LIMIAR_DEDUPLICACAO,
    MUNICIPIO,
    PAIS,
    UF,
)
from saomanuel_geo.modelos import CandidatoRemoto

PREFIXOS_LOGRADOURO: tuple[str, ...] = (
    "rua",
    "avenida",
    "alameda",
    "travessa",
    "praca",
    "praça",
    "pca",
)

COMPLEMENTOS: tuple[str, ...] = ("apto", "bloco", "casa", "lote", "quadra")

_RE_PREFIXO = re.compile(
    r"\b(?:" + "|".join(PREFIXOS_LOGRADOURO) + r")\s+", re.IGNORECASE
)
_RE_COMPLEMENTO = re.compile(
    r"\b(?:" + "|".join(COMPLEMENTOS) + r")\b.*$", re.IGNORECASE
)
_RE_PONTUACAO = re.compile(r"[^\w\s]|_")
_RE_ESPACOS = re.compile(r"\s+")
_RE_NUMERO = re.compile(r"\d+")


# ===========================================================================
# Limpeza de texto
# ===========================================================================


def remover_acentos(texto: str) -> str:
    """Remove acentuação preservando caracteres ASCII básicos."""
    return "".join(
        c for c in unicodedata.normalize("NFKD", texto) if not unicodedata.combining(c)
    )


def _colapsar_espacos(texto: str) -> str:
    return _RE_ESPACOS.sub(" ", texto).strip()


def normalizar_texto(texto: str) -> str:
    """Normaliza texto para busca e chave de cache.

    Minúsculas, sem acentos, pontuação trocada por espaço e espaços colapsados.
    Idempotente: ``normalizar_texto(normalizar_texto(s)) == normalizar_texto(s)``.

    Exemplo::

        >>> normalizar_texto("  Praça  da Matriz, nº 10 ")
        'praca da matriz no 10'
    """
    if not texto:
        return ""
    texto = remover_acentos(texto).lower()
    texto = _RE_PONTUACAO.sub(" ", texto)
    return _colapsar_espacos(texto)


def remover_numeros(texto: str) -> str:
    return _colapsar_espacos(_RE_NUMERO.sub("", texto))


def extrair_numero(texto: str) -> int | None:
    """Primeira sequência de dígitos do texto, ou ``None``."""
    match = _RE_NUMERO.search(texto or "")
    return int(match.group()) if match else None


def extrair_rua(texto: str) -> str:
    """Extrai apenas o nome da rua.

    Remove números, prefixos de logradouro (rua, avenida, alameda, travessa,
    praça) e qualquer complemento a partir de apto/bloco/casa/lote/quadra.
    """
    texto = _RE_NUMERO.sub("", texto or "")
    texto = _RE_PREFIXO.sub("", texto)
    texto = _RE_COMPLEMENTO.sub("", texto)
    return _colapsar_espacos(texto)


def formatar_endereco(detalhes: Mapping[str, str]) -> str:
    """Monta ``"rua, número, bairro, cidade, estado"`` a partir do ``address`` do Nominatim."""
    partes: list[str] = []
    rua = detalhes.get("road")
    if rua:
        partes.append(rua)
    numero = detalhes.get("house_number")
    if numero:
        if partes:
            partes[-1] = f"{partes[-1]}, {numero}"
        else:
            partes.append(numero)
    bairro = detalhes.get("neighbourhood") or detalhes.get("suburb")
    if bairro:
        partes.append(bairro)
    cidade = detalhes.get("city") or detalhes.get("town") or detalhes.get("municipality")
    if cidade:
        partes.append(cidade)
    estado = detalhes.get("state")
    if estado:
        partes.append(estado)
    return ", ".join(partes)


# ===========================================================================
# Variações de busca
# ===========================================================================


def gerar_variacoes_busca(endereco: str) -> list[str]:
    """Gera variações de consulta em ordem de preferência, sem duplicatas.

    Ordem: normalizado → sem números → só a rua → com cidade → com cidade/UF →
    com cidade/UF/país → só com país.  O chamador tenta na ordem e para no
    primeiro resultado dentro da área.
    """
    normalizado = normalizar_texto(endereco)
    if not normalizado:
        return []

    variacoes = [normalizado]

    sem_numeros = remover_numeros(normalizado)
    if sem_numeros and sem_numeros != normalizado:
        variacoes.append(sem_numeros)

    so_rua = extrair_rua(normalizado)
    if so_rua and so_rua not in (normalizado, sem_numeros):
        variacoes.append(so_rua)

    variacoes.append(f"{normalizado}, {MUNICIPIO}")
    variacoes.append(f"{normalizado}, {MUNICIPIO}, {UF}")
    variacoes.append(f"{normalizado}, {MUNICIPIO}, {UF}, {PAIS}")
    variacoes.append(f"{normalizado}, {PAIS}")

    return list(dict.fromkeys(variacoes))


# ===========================================================================
# Pós-processamento de candidatos
# ===========================================================================


def distancia_do_centro(
    lat: float, lng: float, centro: tuple[float, float] = (CENTRO_LAT, CENTRO_LNG)
) -> float:
    """Distância euclidiana em graus até o centro do município."""
    return math.hypot(lat - centro[0], lng - centro[1])


def deduplicar_resultados(
    resultados: Iterable[CandidatoRemoto], limiar: float = LIMIAR_DEDUPLICACAO
) -> list[CandidatoRemoto]:
    """Remove candidatos a menos de ``limiar`` graus de um já mantido (o primeiro vence)."""
    mantidos: list[CandidatoRemoto] = []
    for resultado in resultados:
        duplicado = any(
            abs(existente.lat - resultado.lat) < limiar
            and abs(existente.lng - resultado.lng) < limiar
            for existente in mantidos
        )
        if not duplicado:
            mantidos.append(resultado)
    return mantidos


def tem_numero(texto: str) -> bool:
    return bool(_RE_NUMERO.search(texto or ""))


def cita_municipio(texto: str) -> bool:
    return normalizar_texto(MUNICIPIO) in normalizar_texto(texto or "")


def ordenar_por_relevancia(
    resultados: Iterable[CandidatoRemoto],
) -> list[CandidatoRemoto]:
    """Ordenação estável: primeiro os que citam número, depois os do município."""
    return sorted(
        resultados,
        key=lambda c: (
            not tem_numero(c.nome_exibicao),
            not cita_municipio(c.cidade or c.nome_exibicao),
        ),
    )


def encontrar_mais_proximo(
    consulta: str, resultados: Sequence[CandidatoRemoto]
) -> CandidatoRemoto | None:
    """Escolhe o candidato mais parecido com a consulta.

    Pontuação: +1 por palavra da consulta (mais de 2 letras) presente no nome,
    +2 se o nome citar o município, −10 × distância em graus até o centro.
    Se nenhum candidato pontuar acima de zero, retorna o primeiro.
    """
    if not resultados:
        return None

    palavras = [p for p in normalizar_texto(consulta).split() if len(p) > 2]
    if not palavras:
        return resultados[0]

    melhor = resultados[0]
    melhor_score = -math.inf
    for candidato in resultados:
        nome = normalizar_texto(candidato.nome_exibicao)
        score = float(sum(1 for p in palavras if p in nome))
        if cita_municipio(nome):
            score += 2
        score -= distancia_do_centro(candidato.lat, candidato.lng) * 10
        if score > melhor_score:
            melhor, melhor_score = candidato, score

    return melhor if melhor_score > 0 else resultados[0]
