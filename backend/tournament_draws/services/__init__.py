"""
Services Layer

Draw engine logic behind the routes:
- Pure engines (pairing, standings, bracket, conflict detection) take plain inputs
- Orchestrators (draw_service, match_lifecycle, court_assignment) take a session
  and commit once per operation
- Nothing here depends on HTTP request/response objects
"""
