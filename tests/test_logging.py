"""
Tests for the logging module.
"""

from deal_reconciler.logging import (
    PipelineTimer,
    add_context_info,
    get_component,
    get_run_id,
    logging_context,
)


class TestLoggingContext:
    """Test logging context management."""

    def test_logging_context_sets_values(self):
        with logging_context(run_id='run_123', component='propagation'):
            assert get_run_id() == 'run_123'
            assert get_component() == 'propagation'

    def test_logging_context_restores_values(self):
        with logging_context(run_id='outer'):
            with logging_context(run_id='inner'):
                assert get_run_id() == 'inner'
            assert get_run_id() == 'outer'

        assert get_run_id() is None

    def test_logging_context_partial_values(self):
        with logging_context(component='purger'):
            assert get_component() == 'purger'
            assert get_run_id() is None

    def test_processor_adds_context(self):
        with logging_context(run_id='abc', component='auditor'):
            event = add_context_info(None, 'info', {'event': 'auditor.complete'})

        assert event == {'event': 'auditor.complete', 'run_id': 'abc', 'component': 'auditor'}

    def test_processor_without_context(self):
        assert add_context_info(None, 'info', {'event': 'x'}) == {'event': 'x'}


class TestPipelineTimer:
    """Test pipeline timing functionality."""

    def test_timer_records_stages(self):
        timer = PipelineTimer()

        with timer.stage('load_accounts'):
            pass
        with timer.stage('propagate'):
            pass

        assert timer.stages['load_accounts'] >= 0
        assert timer.stages['propagate'] >= 0

    def test_stage_recorded_on_exception(self):
        timer = PipelineTimer()

        try:
            with timer.stage('failing'):
                raise RuntimeError('boom')
        except RuntimeError:
            pass

        assert 'failing' in timer.stages

    def test_summary(self):
        timer = PipelineTimer()
        timer.stages['a'] = 1.234

        summary = timer.summary()

        assert summary['stages'] == {'a': 1.23}
        assert summary['total_ms'] >= 0
