"""Graph-level engines: virtualization, clustering and reachability."""
