"""Header reconciliation and transactional ingestion for the JCMT Science Archive."""
