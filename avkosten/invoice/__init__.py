"""Pure invoice-ingestion logic: extraction contract, collaborator interfaces and preview staging."""
