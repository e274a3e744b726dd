import pytest

from tcwatch_app.metadata.models import ProviderName
from tests.factories import FakeContentProvider, FakeDependentProvider


@pytest.fixture
def no_providers():
    """Every provider configured, none with a match."""
    return (
        [FakeContentProvider(ProviderName.TMDB), FakeContentProvider(ProviderName.WATCHMODE)],
        [FakeDependentProvider(ProviderName.TVDB), FakeDependentProvider(ProviderName.TVMAZE)],
    )
