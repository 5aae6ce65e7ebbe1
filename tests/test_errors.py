"""
Tests for the errors module.
"""

from sqlalchemy.exc import OperationalError, ProgrammingError

from deal_reconciler.errors import (
    AssignmentError,
    BatchResult,
    ConfigurationError,
    NoAccountsAvailableError,
    PipelineError,
    ReconcilerError,
    StoreConnectionError,
    StoreError,
    StoreQueryError,
    StoreWriteError,
    wrap_store_error,
)


class TestErrorHierarchy:
    """Test error class hierarchy."""

    def test_base_error_with_context(self):
        error = ReconcilerError('Something went wrong', context={'key': 'value', 'count': 42})

        assert error.message == 'Something went wrong'
        assert error.context == {'key': 'value', 'count': 42}
        assert 'key' in str(error)

    def test_base_error_without_context(self):
        error = ReconcilerError('Simple error')

        assert error.context == {}
        assert str(error) == 'Simple error'

    def test_error_inheritance(self):
        assert isinstance(ConfigurationError('x'), ReconcilerError)
        assert isinstance(NoAccountsAvailableError('x'), PipelineError)
        assert isinstance(AssignmentError('x'), PipelineError)
        assert isinstance(StoreConnectionError('x'), StoreError)
        assert isinstance(StoreQueryError('x'), StoreError)
        assert isinstance(StoreWriteError('x'), StoreError)


class TestWrapStoreError:
    """Test wrapping driver exceptions."""

    def test_connection_errors(self):
        wrapped = wrap_store_error(ConnectionRefusedError('refused'))

        assert isinstance(wrapped, StoreConnectionError)
        assert wrapped.context['error_type'] == 'ConnectionRefusedError'

    def test_sqlalchemy_connection_message(self):
        original = OperationalError('SELECT 1', {}, Exception('could not connect to server'))

        assert isinstance(wrap_store_error(original), StoreConnectionError)

    def test_query_error(self):
        original = ProgrammingError('SELECT', {}, Exception('column "nope" does not exist'))

        wrapped = wrap_store_error(original, {'collection': 'deals'})

        assert isinstance(wrapped, StoreQueryError)
        assert wrapped.context['collection'] == 'deals'
        assert 'does not exist' in wrapped.context['original_error']

    def test_write_error(self):
        wrapped = wrap_store_error(Exception('violates check constraint'), write=True)

        assert isinstance(wrapped, StoreWriteError)

    def test_store_errors_pass_through(self):
        original = StoreWriteError('already typed')

        assert wrap_store_error(original) is original


class TestBatchResult:
    """Test best-effort batch accounting."""

    def test_counters(self):
        batch = BatchResult()
        batch.record_update()
        batch.record_update()
        batch.record_skip()
        batch.record_failure('sf-deal-9', 'boom')

        assert batch.attempted == 3
        assert batch.processed == 4
        assert batch.failures == ['sf-deal-9']
        assert batch.errors == ['sf-deal-9: boom']
        assert not batch.all_succeeded

    def test_failure_without_message(self):
        batch = BatchResult()
        batch.record_failure('sf-deal-1')

        assert batch.failed == 1
        assert batch.errors == []

    def test_merge(self):
        total = BatchResult(updated=1)
        total.merge(BatchResult(updated=2, skipped=3, failed=1, failures=['x']))

        assert total.to_dict() == {
            'updated': 3,
            'skipped': 3,
            'failed': 1,
            'failures': ['x'],
            'errors': [],
        }
