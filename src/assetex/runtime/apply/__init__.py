# src/assetex/runtime/apply/__init__.py
"""
Market domain appliers.

Each module owns one table of the market state and exposes:
  - read helpers (pure)
  - mutators that validate first and only then write
  - an apply_<domain>(state, env) router returning Json meta, or None if the
    tx_type belongs to another domain
"""
