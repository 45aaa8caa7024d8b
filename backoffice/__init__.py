"""Back-office console for the core banking and merchant APIs."""
