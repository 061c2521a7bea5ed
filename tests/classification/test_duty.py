from tariffnav.classification.duty import duty_range, resolve_duty
from tariffnav.classification.models import ClassificationCandidate


def _candidate(code: str) -> ClassificationCandidate:
    return ClassificationCandidate(hts_code=code, description="", level="tariff_line", general_rate=None)


def test_own_rate_wins(seed_store):
    duty = resolve_duty(seed_store, "61091000")
    assert duty.rate == "16.5%"
    assert duty.inherited_from is None
    assert duty.percentage == 16.5


def test_statistical_code_inherits_from_tariff_line(seed_store):
    duty = resolve_duty(seed_store, "6912.00.48.10")
    assert duty.rate == "9.8%"
    assert duty.inherited_from == "69120048"


def test_inheritance_skips_blank_tariff_line_to_subheading(seed_store):
    duty = resolve_duty(seed_store, "7323930080")
    assert duty.rate == "2%"
    assert duty.inherited_from == "732393"
    model = duty.to_model()
    assert model.base_rate == "2%"
    assert model.percentage == 2.0


def test_free_is_a_rate_and_missing_means_free(seed_store):
    inherited_free = resolve_duty(seed_store, "9503000011")
    assert inherited_free.rate == "Free"
    assert inherited_free.inherited_from == "95030000"

    nothing = resolve_duty(seed_store, "6912")
    assert nothing.rate == "Free"
    assert nothing.inherited_from is None
    assert resolve_duty(seed_store, "99999999").rate == "Free"


def test_duty_range_spans_candidates(seed_store):
    spread = duty_range(seed_store, [_candidate("6912004810"), _candidate("69111038")])
    assert spread.min_code == "69111038"
    assert spread.max_code == "6912004810"
    assert spread.formatted == "8.0% - 9.8%"


def test_duty_range_with_free_floor(seed_store):
    spread = duty_range(seed_store, [_candidate("85444210"), _candidate("85444290")])
    assert spread.formatted == "Free - 2.6%"


def test_duty_range_needs_two_rates_and_a_real_spread(seed_store):
    assert duty_range(seed_store, [_candidate("6912004810")]) is None
    assert duty_range(seed_store, [_candidate("73239300"), _candidate("73239400")]) is None
