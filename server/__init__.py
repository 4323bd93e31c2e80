"""FMC Comic server package.

Modules:
- api: FastAPI app and routing for the slug/UUID mapping service
- mapping: lookup-or-create and resolve operations
- database: SQLModel engine and sessions
- models: Mapping table
- config: INI parsing and config object
"""
