"""
Property-based tests for sensitive-data screening and origin matching.
"""
import string

from hypothesis import given, settings, strategies as st

from core.security import contains_sensitive_data, validate_origin

card_numbers = st.text(alphabet=string.digits, min_size=16, max_size=16)
plain_words = st.text(alphabet=string.ascii_lowercase + " ", max_size=40)
plain_keys = st.text(alphabet=string.ascii_lowercase, min_size=1, max_size=12)
subdomain_labels = st.text(alphabet=string.ascii_lowercase + string.digits + "-", min_size=1, max_size=20)


@given(card=card_numbers, key=plain_keys)
@settings(max_examples=100)
def test_sixteen_digit_values_are_always_flagged(card, key):
    assert contains_sensitive_data({key: card})


@given(card=card_numbers, prefix=plain_words, suffix=plain_words)
@settings(max_examples=100)
def test_card_numbers_inside_text_are_flagged(card, prefix, suffix):
    assert contains_sensitive_data({"notes": f"{prefix} {card} {suffix}"})


@given(payload=st.dictionaries(plain_keys, plain_words, max_size=8))
@settings(max_examples=200)
def test_alphabetic_payloads_are_never_flagged(payload):
    assert not contains_sensitive_data(payload)


@given(values=st.lists(st.integers(min_value=0, max_value=10 ** 9 - 1), max_size=20))
@settings(max_examples=200)
def test_short_integers_are_never_flagged(values):
    assert not contains_sensitive_data({"units": values})


@given(label=subdomain_labels)
def test_wildcard_admits_every_subdomain(label):
    assert validate_origin(f"https://{label}.ceylog.com", ["*.ceylog.com"])


@given(label=subdomain_labels)
def test_exact_entries_do_not_admit_subdomains(label):
    assert not validate_origin(f"https://{label}.ceylog.com", ["https://ceylog.com"])
