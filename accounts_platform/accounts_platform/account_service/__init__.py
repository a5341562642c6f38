"""
account_service package

Core backend logic for the account service:

- FastAPI application (`main.py`)
- SQLAlchemy models and database integration (`models.py`, `db.py`, `store.py`)
- Field validation, password hashing and access tokens
  (`validation.py`, `passwords.py`, `tokens.py`)
- Account workflows and federated login (`accounts.py`, `federation.py`)
- Pydantic schemas (`schemas.py`)
"""
