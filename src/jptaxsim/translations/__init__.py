"""JSON translation catalogues shared by the backend and API consumers."""
