"""Static elixir definitions (id -> family, effect kind, tier, display text)."""
