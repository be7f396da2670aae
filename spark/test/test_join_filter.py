import pytest
from pyspark.sql import functions as F

from conftest import fare, trip
from taxi_tip.errors import FilterError, SchemaError
from taxi_tip.join_filter import TRIP_FARE_PREDICATES, Predicate, join_and_filter


def test_single_match_keeps_all_columns(make_trips, make_fares):
    out = join_and_filter(make_trips([trip()]), make_fares([fare()]))

    rows = out.collect()
    assert len(rows) == 1
    assert rows[0].pickup_hour == 8
    assert rows[0].vendor_id == "CMT"
    assert rows[0].passenger_count == 2
    assert out.columns.count("medallion") == 1


def test_only_exact_composite_key_matches(make_trips, make_fares):
    fares = make_fares([
        fare(medallion="B"),
        fare(hack_license="L2"),
        fare(pickup_datetime="2013-01-01 08:15:01"),
    ])
    assert join_and_filter(make_trips([trip()]), fares).count() == 0


def test_tip_not_below_fare_is_excluded(make_trips, make_fares):
    # both values in range on their own
    fares = make_fares([fare(tip_amount=12.0, fare_amount=10.0)])
    assert join_and_filter(make_trips([trip()]), fares).count() == 0


@pytest.mark.parametrize("trip_kw,fare_kw", [
    ({"passenger_count": 0}, {}),
    ({"passenger_count": 8}, {}),
    ({}, {"tip_amount": -1.0}),
    ({}, {"tip_amount": 15.5, "fare_amount": 100.0}),
    ({}, {"fare_amount": 0.5, "tip_amount": 0.0}),
    ({}, {"fare_amount": 151.0}),
    ({"trip_distance": 0.0}, {}),
    ({"trip_distance": 40.1}, {}),
    ({"trip_time_in_secs": 29}, {}),
    ({"trip_time_in_secs": 7201}, {}),
    ({"rate_code": 6}, {}),
    ({}, {"payment_type": "NOC"}),
    ({"passenger_count": None}, {}),
])
def test_each_outlier_is_dropped(make_trips, make_fares, trip_kw, fare_kw):
    assert join_and_filter(make_trips([trip(**trip_kw)]), make_fares([fare(**fare_kw)])).count() == 0


@pytest.mark.parametrize("trip_kw,fare_kw", [
    ({"passenger_count": 7, "trip_distance": 40.0, "trip_time_in_secs": 30, "rate_code": 5}, {}),
    ({"trip_time_in_secs": 7200}, {"tip_amount": 0.0, "fare_amount": 1.0, "payment_type": "CRD"}),
    ({}, {"tip_amount": 15.0, "fare_amount": 150.0}),
])
def test_boundary_values_are_kept(make_trips, make_fares, trip_kw, fare_kw):
    assert join_and_filter(make_trips([trip(**trip_kw)]), make_fares([fare(**fare_kw)])).count() == 1


def test_duplicate_keys_are_preserved(make_trips, make_fares):
    out = join_and_filter(make_trips([trip(), trip()]), make_fares([fare(), fare(tip_amount=0.0)]))
    assert out.count() == 4


def test_every_output_row_satisfies_all_predicates(make_trips, make_fares):
    trips, fares = [], []
    for i in range(40):
        key = {"medallion": f"M{i}"}
        trips.append(trip(passenger_count=i % 9, trip_distance=float(i), trip_time_in_secs=i * 200,
                          rate_code=i % 7, **key))
        fares.append(fare(tip_amount=float(i % 17), fare_amount=float(i * 4 % 160),
                          payment_type=("CSH", "CRD", "NOC", "DIS")[i % 4], **key))

    out = join_and_filter(make_trips(trips), make_fares(fares))
    assert out.count() > 0

    all_hold = F.lit(True)
    for p in TRIP_FARE_PREDICATES:
        all_hold = all_hold & F.expr(p.sql)
    assert out.where(~all_hold).count() == 0


def test_push_down_does_not_change_result(make_trips, make_fares):
    trips = make_trips([trip(), trip(passenger_count=9), trip(medallion="B")])
    fares = make_fares([fare(), fare(medallion="B", tip_amount=11.0, fare_amount=10.0)])

    pushed = join_and_filter(trips, fares, push_down=True)
    after = join_and_filter(trips, fares, push_down=False)

    assert sorted(pushed.collect()) == sorted(after.collect())
    assert pushed.count() == 1


def test_predicate_on_missing_column_is_filter_error(make_trips, make_fares):
    bad = TRIP_FARE_PREDICATES + (Predicate("extra", "extra_fee > 0", ("extra_fee",)),)
    with pytest.raises(FilterError, match="extra_fee"):
        join_and_filter(make_trips([trip()]), make_fares([fare()]), predicates=bad)


def test_unresolvable_predicate_sql_is_filter_error(make_trips, make_fares):
    bad = (Predicate("typo", "tip_amout > 0", ("tip_amount",)),)
    with pytest.raises(FilterError, match="typo"):
        join_and_filter(make_trips([trip()]), make_fares([fare()]), predicates=bad)


def test_missing_join_key_is_schema_error(make_trips, make_fares):
    trips = make_trips([trip()]).drop("hack_license")
    with pytest.raises(SchemaError):
        join_and_filter(trips, make_fares([fare()]))


def test_under_declared_predicate_is_placed_after_join(make_trips, make_fares):
    # declared as fare-only but also reads a trip column
    cross = (Predicate("tip_below_distance", "tip_amount < trip_distance", ("tip_amount",)),)
    trips = make_trips([trip(trip_distance=5.0), trip(medallion="B", trip_distance=1.0)])
    fares = make_fares([fare(tip_amount=2.0), fare(medallion="B", tip_amount=2.0)])

    pushed = join_and_filter(trips, fares, predicates=cross, push_down=True)
    after = join_and_filter(trips, fares, predicates=cross, push_down=False)

    assert [r.medallion for r in pushed.collect()] == ["A"]
    assert sorted(pushed.collect()) == sorted(after.collect())
