"""MRV pipeline orchestration: state, merge engine, routing and the LangGraph wiring."""
