from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from railfare.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from railfare.src.enums import BerthKind, CoachKind


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()

# Kilometres and money share the same precision
KM = Numeric(10, 2)
MONEY = Numeric(10, 2)


# ----------------------------------- Network DB Models ---------------------------------------#
class TrainType(ORMbase):
    """
    Represents a category of train (express, rapid, ordinary, ...).

    The base fare of a journey depends on the train type and the travel class.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the train type.

        name (String(64)):
            Human-readable name of the train type. Must be unique.

        is_active (Boolean):
            Whether trains of this type are currently operated.
    """

    __tablename__ = "train_type"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Train(ORMbase):
    """
    Represents a scheduled train with its own ordered route of stops.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the train.

        number (String(16)):
            Public train number. Must be unique.

        name (String(128)):
            Descriptive name of the train.
            ex:- Bangkok -> Chiang Mai Special Express

        train_type_id (Integer):
            References the `train_type.id` column.
            Determines which base fares apply to the train.

        is_active (Boolean):
            Only active trains take part in batch distance materialization.
    """

    __tablename__ = "train"

    id = Column(Integer, primary_key=True)
    number = Column(String(16), nullable=False, unique=True)
    name = Column(String(128), nullable=False)
    train_type_id = Column(
        Integer, ForeignKey("train_type.id", ondelete="RESTRICT"), nullable=False
    )
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Station(ORMbase):
    __tablename__ = "station"

    id = Column(Integer, primary_key=True)
    code = Column(String(8), nullable=False, unique=True)
    name = Column(String(128), nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class TrainStop(ORMbase):
    """
    Represents a station visited by a train.

    The stops of one train, ordered by `stop_order`, form the route of that
    train. The route is the only source of truth for distances, the
    `route_distance` table is derived from it.

    Table Constraints:
        - UniqueConstraint(train_id, stop_order):
            Sequence positions are unique within one train.
        - UniqueConstraint(train_id, station_id):
            A train visits a station at most once.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the stop.

        train_id (Integer):
            Foreign key referencing the train. Deleting the train removes its stops.

        station_id (Integer):
            Foreign key referencing the station served by this stop.

        stop_order (Integer):
            Position of the stop in the route, contiguous from 1.

        distance_from_origin (Numeric):
            Cumulative distance in kilometres from the first stop of the train.
            Non-decreasing in `stop_order`.

        is_active (Boolean):
            Inactive stops are skipped when deriving distances, as if the
            train did not call at the station.
    """

    __tablename__ = "train_stop"
    __table_args__ = (
        UniqueConstraint("train_id", "stop_order"),
        UniqueConstraint("train_id", "station_id"),
        CheckConstraint("distance_from_origin >= 0"),
    )

    id = Column(Integer, primary_key=True)
    train_id = Column(
        Integer, ForeignKey("train.id", ondelete="CASCADE"), nullable=False, index=True
    )
    station_id = Column(
        Integer, ForeignKey("station.id", ondelete="RESTRICT"), nullable=False
    )
    stop_order = Column(Integer, nullable=False)
    distance_from_origin = Column(KM, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Coach(ORMbase):
    """
    Represents a coach (bogie) that can be attached to trains.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the coach.

        name (String(64)):
            Human-readable name of the coach.

        travel_class (Integer):
            Travel class sold in this coach (1, 2, 3, ...).
            Selects the base fare and the distance fare table.

        kind (Integer):
            Enum value of `CoachKind`. Decides whether an AC surcharge and a
            berth fee are part of the fare.
    """

    __tablename__ = "coach"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False)
    travel_class = Column(Integer, nullable=False)
    kind = Column(Integer, nullable=False, default=CoachKind.STANDARD)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    @property
    def coachKind(self) -> CoachKind:
        return CoachKind(self.kind)

    @property
    def hasAC(self) -> bool:
        return self.coachKind.hasAC

    @property
    def isSleeper(self) -> bool:
        return self.coachKind.isSleeper


class TrainComposition(ORMbase):
    """
    Attaches a coach to a train at a given position.

    Only coaches with an active composition entry can be priced on a train.
    """

    __tablename__ = "train_composition"
    __table_args__ = (UniqueConstraint("train_id", "coach_id"),)

    id = Column(Integer, primary_key=True)
    train_id = Column(
        Integer, ForeignKey("train.id", ondelete="CASCADE"), nullable=False, index=True
    )
    coach_id = Column(
        Integer, ForeignKey("coach.id", ondelete="CASCADE"), nullable=False
    )
    position = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Tariff DB Models ----------------------------------------#
class BaseFare(ORMbase):
    """
    Flat fare charged for a travel class on a train type.

    Table Constraints:
        - UniqueConstraint(train_type_id, travel_class):
            Exactly one base fare per train type and class.

    Columns:
        train_type_id (Integer):
            Foreign key referencing the train type.

        travel_class (Integer):
            Travel class the fare applies to.

        fare_value (Numeric):
            Flat amount added to every journey in this class.
    """

    __tablename__ = "base_fare"
    __table_args__ = (UniqueConstraint("train_type_id", "travel_class"),)

    id = Column(Integer, primary_key=True)
    train_type_id = Column(
        Integer, ForeignKey("train_type.id", ondelete="CASCADE"), nullable=False
    )
    travel_class = Column(Integer, nullable=False)
    fare_value = Column(MONEY, nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class DistanceFare(ORMbase):
    """
    A distance fare table of one travel class.

    The table groups the distance tiers (`distance_fare_range`) of the class.
    Several tables may exist per class, the active one is used for pricing.
    """

    __tablename__ = "distance_fare"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False)
    travel_class = Column(Integer, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class DistanceFareRange(ORMbase):
    """
    A distance tier of a distance fare table.

    Ranges of one table never overlap, see `railfare.src.interval`.

    Columns:
        distance_fare_id (Integer):
            Scope of the range. Foreign key referencing the distance fare table.

        min_km (Numeric):
            Inclusive lower bound of the tier.

        max_km (Numeric):
            Exclusive upper bound of the tier. NULL means no upper bound,
            only the topmost tier of a table may be open.

        fare_per_km (Numeric):
            Rate multiplied by the journey distance. Exclusive with `flat_rate`.

        flat_rate (Numeric):
            Fixed fare of the tier. Exclusive with `fare_per_km`.
    """

    __tablename__ = "distance_fare_range"
    __table_args__ = (
        CheckConstraint("min_km >= 0"),
        CheckConstraint("max_km IS NULL OR max_km > min_km"),
        CheckConstraint("(fare_per_km IS NULL) <> (flat_rate IS NULL)"),
    )

    id = Column(Integer, primary_key=True)
    distance_fare_id = Column(
        Integer,
        ForeignKey("distance_fare.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    min_km = Column(KM, nullable=False)
    max_km = Column(KM)
    fare_per_km = Column(MONEY)
    flat_rate = Column(MONEY)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class CoachACFare(ORMbase):
    """
    Air-conditioning surcharge tier of one coach.

    Scoped per coach; ranges of one coach never overlap.
    """

    __tablename__ = "coach_ac_fare"
    __table_args__ = (
        CheckConstraint("min_km >= 0"),
        CheckConstraint("max_km IS NULL OR max_km > min_km"),
    )

    id = Column(Integer, primary_key=True)
    coach_id = Column(
        Integer, ForeignKey("coach.id", ondelete="CASCADE"), nullable=False, index=True
    )
    min_km = Column(KM, nullable=False)
    max_km = Column(KM)
    ac_fare = Column(MONEY, nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class BerthFare(ORMbase):
    """
    Sleeper berth fee tier of one coach and berth kind.

    The scope of a range is the pair (coach_id, berth_kind).
    """

    __tablename__ = "berth_fare"
    __table_args__ = (
        CheckConstraint("min_km >= 0"),
        CheckConstraint("max_km IS NULL OR max_km > min_km"),
    )

    id = Column(Integer, primary_key=True)
    coach_id = Column(
        Integer, ForeignKey("coach.id", ondelete="CASCADE"), nullable=False, index=True
    )
    berth_kind = Column(Integer, nullable=False, default=BerthKind.LOWER)
    min_km = Column(KM, nullable=False)
    max_km = Column(KM)
    fare_amount = Column(MONEY, nullable=False)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Derived DB Models ---------------------------------------#
class RouteDistance(ORMbase):
    """
    Materialized distance between two stations on the route of a train.

    This is a cache, it can always be rebuilt from `train_stop`.
    Both directions of a station pair are stored so a lookup by either
    ordering is a single indexed read.

    Table Constraints:
        - UniqueConstraint(train_id, from_station_id, to_station_id)
    """

    __tablename__ = "route_distance"
    __table_args__ = (
        UniqueConstraint("train_id", "from_station_id", "to_station_id"),
    )

    id = Column(Integer, primary_key=True)
    train_id = Column(
        Integer, ForeignKey("train.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_station_id = Column(
        Integer, ForeignKey("station.id", ondelete="CASCADE"), nullable=False
    )
    to_station_id = Column(
        Integer, ForeignKey("station.id", ondelete="CASCADE"), nullable=False
    )
    distance_km = Column(KM, nullable=False)
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())
