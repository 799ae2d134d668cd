from decimal import Decimal
from threading import Barrier, Thread
import pytest

from railfare.src import exceptions
from railfare.src.interval import Bounded, Interval, IntervalSet, OpenEnded, makeInterval


def test_make_interval_variants():
    assert isinstance(makeInterval(0, 100), Bounded)
    assert isinstance(makeInterval(100), OpenEnded)
    assert makeInterval("0.5", 2).minKm == Decimal("0.5")
    assert makeInterval(100).maxKm is None


@pytest.mark.parametrize("minKm,maxKm", [(-1, 10), (10, 10), (20, 10)])
def test_invalid_bounds_rejected(minKm, maxKm):
    with pytest.raises(exceptions.InvalidRange):
        makeInterval(minKm, maxKm)


def test_negative_open_range_rejected():
    with pytest.raises(exceptions.InvalidRange):
        makeInterval(-5)


def test_base_interval_cannot_be_built():
    with pytest.raises(TypeError):
        Interval(Decimal(1))


def test_variants_validate_bounds_directly():
    assert Bounded(Decimal(0), Decimal(10)).maxKm == Decimal(10)
    assert OpenEnded(Decimal(10)).isOpenEnded
    with pytest.raises(exceptions.InvalidRange):
        Bounded(Decimal(10), Decimal(5))
    with pytest.raises(exceptions.InvalidRange):
        Bounded(Decimal(-1), Decimal(5))
    with pytest.raises(exceptions.InvalidRange):
        OpenEnded(Decimal(-1))


def test_contains_is_half_open():
    interval = makeInterval(100, 200)
    assert interval.contains(100)
    assert interval.contains(Decimal("199.99"))
    assert not interval.contains(200)
    assert not interval.contains(99)
    assert makeInterval(200).contains(10**6)


def test_overlap_cases():
    existing = makeInterval(100, 200)
    # starts inside
    assert makeInterval(150, 250).overlaps(existing)
    # ends inside
    assert makeInterval(50, 150).overlaps(existing)
    # contains the existing range
    assert makeInterval(50, 250).overlaps(existing)
    # inside the existing range
    assert makeInterval(120, 130).overlaps(existing)
    # open range reaching over it
    assert makeInterval(150).overlaps(existing)
    # adjacent on either side
    assert not makeInterval(0, 100).overlaps(existing)
    assert not makeInterval(200, 300).overlaps(existing)
    assert not makeInterval(200).overlaps(existing)


def test_two_open_ranges_always_overlap():
    assert makeInterval(500).overlaps(makeInterval(100))
    assert makeInterval(100).overlaps(makeInterval(500))


def test_insert_rejects_overlap_and_keeps_scope_unchanged():
    intervals = IntervalSet()
    intervals.insert("coach:1", makeInterval(0, 100), "first")
    with pytest.raises(exceptions.RangeOverlap) as e:
        intervals.insert("coach:1", makeInterval(50, 150), "second")
    assert e.value.scope == "coach:1"
    assert e.value.min_km == Decimal(0)
    assert e.value.max_km == Decimal(100)
    assert e.value.status_code == 409
    assert [payload for _, _, payload in intervals.ranges("coach:1")] == ["first"]


def test_scopes_are_independent():
    intervals = IntervalSet()
    intervals.insert(1, makeInterval(0, 100))
    intervals.insert(2, makeInterval(0, 100))
    assert len(intervals.ranges(1)) == 1
    assert len(intervals.ranges(2)) == 1


def test_lookup_picks_the_single_containing_range():
    intervals = IntervalSet()
    intervals.insert(1, makeInterval(100, 200), "middle")
    intervals.insert(1, makeInterval(0, 100), "low")
    intervals.insert(1, makeInterval(200), "high")

    assert intervals.lookup(1, 0)[2] == "low"
    assert intervals.lookup(1, 100)[2] == "middle"
    assert intervals.lookup(1, Decimal("199.99"))[2] == "middle"
    assert intervals.lookup(1, 200)[2] == "high"
    assert intervals.lookup(1, 10000)[2] == "high"
    assert intervals.lookup(2, 50) is None


def test_lookup_outside_every_range():
    intervals = IntervalSet()
    intervals.insert(1, makeInterval(10, 20))
    assert intervals.lookup(1, 5) is None
    assert intervals.lookup(1, 20) is None


def test_second_open_range_rejected():
    intervals = IntervalSet()
    intervals.insert(1, makeInterval(300))
    with pytest.raises(exceptions.RangeOverlap):
        intervals.insert(1, makeInterval(500))
    with pytest.raises(exceptions.RangeOverlap):
        intervals.insert(1, makeInterval(400, 450))


def test_remove_is_idempotent():
    intervals = IntervalSet()
    rangeId = intervals.insert(1, makeInterval(0, 100))
    intervals.remove(1, rangeId)
    intervals.remove(1, rangeId)
    intervals.remove(99, rangeId)
    assert intervals.ranges(1) == []
    # the freed span can be reused
    intervals.insert(1, makeInterval(50, 80))


def test_ranges_sorted_by_min_km():
    intervals = IntervalSet()
    intervals.insert(1, makeInterval(200))
    intervals.insert(1, makeInterval(0, 50))
    intervals.insert(1, makeInterval(50, 200))
    assert [interval.minKm for _, interval, _ in intervals.ranges(1)] == [0, 50, 200]


def test_concurrent_overlapping_inserts_admit_one():
    intervals = IntervalSet()
    workers = 8
    barrier = Barrier(workers)
    outcomes = []

    def insert(index):
        barrier.wait()
        try:
            intervals.insert("scope", makeInterval(index, 100 + index))
            outcomes.append("ok")
        except exceptions.RangeOverlap:
            outcomes.append("overlap")

    threads = [Thread(target=insert, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("overlap") == workers - 1
    assert len(intervals.ranges("scope")) == 1


def test_reads_run_safely_alongside_inserts():
    intervals = IntervalSet()
    inserts = 2000
    readers = 4
    done = []
    failures = []

    def write():
        for km in range(inserts):
            intervals.insert("scope", makeInterval(km, km + 1), km)
        done.append(True)

    def read():
        while not done:
            try:
                intervals.lookup("scope", 1500)
                intervals.ranges("scope")
                intervals.findOverlap("scope", makeInterval(inserts))
            except RuntimeError as e:
                failures.append(e)
                return

    threads = [Thread(target=read) for _ in range(readers)]
    threads.append(Thread(target=write))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert failures == []
    assert len(intervals.ranges("scope")) == inserts
    assert intervals.lookup("scope", 1500)[2] == 1500
