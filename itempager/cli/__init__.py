"""Command-line interface for ItemPager.

``python -m itempager.cli`` and the ``itempager`` console script both run
:func:`itempager.cli.main.main`.
"""
