"""
Constantes e caminhos centralizados para o pacote de geocodificação de São Manuel.

Todos os demais módulos devem importar daqui — nunca definir constantes
localmente para evitar divergências.
"""

import os
from pathlib import Path

# ===========================================================================
# Município
# ===========================================================================

#: Nome do município atendido (usado em variações de busca e relevância)
MUNICIPIO: str = "São Manuel"

#: Sigla e nome da UF
UF: str = "SP"
ESTADO: str = "São Paulo"

PAIS: str = "Brasil"

#: Centro de referência do município (praça central)
CENTRO_LAT: float = -22.7311
CENTRO_LNG: float = -48.5706

#: Raio do geofence em graus (~5 km); resultados além disso são descartados
RAIO_GEOFENCE: float = 0.05

#: Distância mínima em graus (~110 m) para considerar dois resultados distintos
LIMIAR_DEDUPLICACAO: float = 0.001

#: Meia-largura da bounding box gerada para resultados locais
MARGEM_BBOX_LOCAL: float = 0.001

# ===========================================================================
# Nominatim / OpenStreetMap
# ===========================================================================

#: Domínio do Nominatim (sobrescrevível para instâncias próprias)
NOMINATIM_DOMAIN: str = os.environ.get(
    "SAOMANUEL_GEO_NOMINATIM_DOMAIN", "nominatim.openstreetmap.org"
)

#: User-Agent identificador (ToS do Nominatim exige string descritiva)
NOMINATIM_USER_AGENT: str = (
    "SaoManuel-Ocorrencias-App/1.0 (contato@saomanuel.sp.gov.br)"
)

#: Delay mínimo entre chamadas ao Nominatim (1 req/s conforme ToS)
NOMINATIM_DELAY: float = 1.1

#: Timeout por requisição, em segundos
NOMINATIM_TIMEOUT: float = 5.0

NOMINATIM_IDIOMA: str = "pt-BR,pt"
NOMINATIM_PAIS: str = "br"
NOMINATIM_LIMITE: int = 5

#: Viewbox ``(lat, lng)`` dos cantos noroeste e sudeste ao redor do município
NOMINATIM_VIEWBOX: tuple[tuple[float, float], tuple[float, float]] = (
    (-22.7000, -48.6000),
    (-22.7600, -48.5400),
)

# ===========================================================================
# Cache
# ===========================================================================

HORA_MS: int = 60 * 60 * 1000

#: TTL padrão quando o chamador não especifica
TTL_PADRAO_MS: int = 24 * HORA_MS

#: Resultados do gazetteer local (alta confiança)
TTL_LOCAL_MS: int = 7 * 24 * HORA_MS

#: Resultados do Nominatim
TTL_REMOTO_MS: int = 24 * HORA_MS

#: Falhas de validação / endereço não encontrado
TTL_NEGATIVO_MS: int = 5 * 60 * 1000

#: Máximo de entradas antes do despejo LRU
CAPACIDADE_CACHE: int = 100

#: Intervalo da limpeza periódica de entradas expiradas, em segundos
INTERVALO_LIMPEZA_S: float = 60 * 60

#: Chave sob a qual o snapshot do cache é persistido
CHAVE_ARMAZENAMENTO: str = "geocoding-cache"

#: Diretório do armazenamento durável (um arquivo JSON por chave)
CACHE_DIR: Path = Path(os.environ.get("SAOMANUEL_GEO_CACHE_DIR", "data"))
