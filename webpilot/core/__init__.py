"""Task orchestration engine: executor, planner, navigator and page bridge"""
