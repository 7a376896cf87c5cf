"""
Flowly Orchestrator Tests

Unit tests for flow loading, sessions, the state machine, rendering, slot
availability, the dispatcher and the HTTP routes. External services
(WhatsApp Cloud API, Google Calendar) are always mocked.

Running Tests:
    # Install with test extras
    pip install -e ".[test]"

    # Run all tests
    pytest tests/ -v

    # Run one module
    pytest tests/unit/test_dispatcher.py -v
"""
