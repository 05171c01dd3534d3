"""
Ponto de entrada de ``python -m saomanuel_geo``.

Delega imediatamente para :func:`saomanuel_geo.cli.main`.

Uso::

    python -m saomanuel_geo --help
    python -m saomanuel_geo geocodificar "Rua Principal, 150"
"""

from saomanuel_geo.cli import main

if __name__ == "__main__":
    main()
