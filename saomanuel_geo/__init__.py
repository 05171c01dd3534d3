"""
Pacote saomanuel_geo — geocodificação híbrida de endereços de São Manuel/SP.

Módulos disponíveis:

- ``saomanuel_geo.config``       — constantes e caminhos centralizados
- ``saomanuel_geo.modelos``      — tipos de resultado (Sucesso | Falha)
- ``saomanuel_geo.normalizacao`` — limpeza de texto e variações de busca
- ``saomanuel_geo.gazetteer``    — tabela local de logradouros com interpolação
- ``saomanuel_geo.remoto``       — fallback via Nominatim (geopy)
- ``saomanuel_geo.cache``        — cache TTL/LRU com persistência em JSON
- ``saomanuel_geo.resolvedor``   — orquestrador cache → local → remoto
- ``saomanuel_geo.lote``         — geocodificação em lote de CSVs
- ``saomanuel_geo.cli``          — interface de linha de comando
"""

__version__ = "0.1.0"
