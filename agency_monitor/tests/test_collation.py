from agency_monitor.core.collation import ITALIAN


def test_lowercase_sorts_before_uppercase():
    assert ITALIAN.sorted(["A", "a"]) == ["a", "A"]
    assert ITALIAN.sorted(["Roma", "roma", "Rimini"]) == ["Rimini", "roma", "Roma"]


def test_accents_and_case_ignored_at_primary_level():
    assert ITALIAN.sorted(["Zona", "èra", "Era", "cantù"]) == ["cantù", "Era", "èra", "Zona"]
