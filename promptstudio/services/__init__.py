"""Services built on the flow engine: storage, flow runs and batch execution."""
