"""
Services Layer

Business logic for the tournament floor:
- scoring_engine: pure bout scoring rules (no database)
- standings_service / bracket_service / mat_sequencer: consume finished bouts
- bout_runtime: load-score-persist orchestration used by the routes
Services raise judo.errors exceptions and never depend on HTTP objects.
"""
