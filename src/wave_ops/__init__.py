"""Wave operations metrics: ingest WMS exports, derive artifacts, recommend actions."""
