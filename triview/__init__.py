"""
triview Application Package

Directory Structure:
├── domain/            # Entities, query values, views, events, errors
├── application/       # Store, coordinators, projection engine, recovery policy
├── infrastructure/    # Query service implementations and wire record mapping
├── routers/           # FastAPI route handlers
├── schemas/           # Pydantic models for API requests/responses
│   └── api_schemas.py # HTTP request/response structures
└── config.py          # Application configuration

Data Flow:
1. **QueryCoordinator** loads pages from a query service and merges them
   into the **NormalizedStore**, the single source of truth.
2. **SelectionCoordinator** holds the selected ids shared by every view.
3. **ProjectionEngine** derives the tree, table and graph views from the
   store and the selection, memoized on both versions.
"""
