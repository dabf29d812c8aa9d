import pytest
from datetime import datetime, timezone, timedelta
from sqlalchemy import create_engine, Column, Integer
from sqlalchemy.orm import sessionmaker, declarative_base
from smart_parking.shared.custom_types import UTCDateTime, WeekdayKeyedJSON
from unittest.mock import MagicMock

Base = declarative_base()


class SampleRow(Base):
    __tablename__ = "sample_rows"
    id = Column(Integer, primary_key=True)
    utc_datetime_col = Column(UTCDateTime)
    weekly_col = Column(WeekdayKeyedJSON)


@pytest.fixture(scope="function")
def db_session_custom_types():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


def test_utc_datetime_aware_to_db_and_back(db_session_custom_types):
    session = db_session_custom_types
    now_aware = datetime.now(timezone.utc).replace(microsecond=0)

    session.add(SampleRow(utc_datetime_col=now_aware))
    session.commit()

    retrieved = session.query(SampleRow).first()
    assert retrieved.utc_datetime_col == now_aware
    assert retrieved.utc_datetime_col.tzinfo == timezone.utc


def test_utc_datetime_naive_is_taken_as_utc(db_session_custom_types):
    session = db_session_custom_types
    naive = datetime(2030, 1, 7, 10, 0)

    session.add(SampleRow(utc_datetime_col=naive))
    session.commit()

    retrieved = session.query(SampleRow).first()
    assert retrieved.utc_datetime_col == naive.replace(tzinfo=timezone.utc)


def test_utc_datetime_none_value(db_session_custom_types):
    session = db_session_custom_types

    session.add(SampleRow(utc_datetime_col=None, weekly_col=None))
    session.commit()

    retrieved = session.query(SampleRow).first()
    assert retrieved.utc_datetime_col is None
    assert retrieved.weekly_col is None


def test_utc_datetime_different_timezone_to_db_and_back(db_session_custom_types):
    session = db_session_custom_types
    est = timezone(timedelta(hours=-5))
    now_est = datetime.now(est).replace(microsecond=0)

    session.add(SampleRow(utc_datetime_col=now_est))
    session.commit()

    retrieved = session.query(SampleRow).first()
    assert retrieved.utc_datetime_col == now_est.astimezone(timezone.utc)
    assert retrieved.utc_datetime_col.tzinfo == timezone.utc


def test_weekday_keys_come_back_as_integers(db_session_custom_types):
    session = db_session_custom_types
    hours = {1: {"open": "08:00", "close": "18:00"}, 6: {"open": "10:00", "close": "14:00"}}

    session.add(SampleRow(weekly_col=hours))
    session.commit()
    session.expire_all()

    retrieved = session.query(SampleRow).first()
    assert retrieved.weekly_col == hours


def test_weekday_keys_are_stored_as_strings():
    stored = WeekdayKeyedJSON().process_bind_param({0: [], 3: ["x"]}, MagicMock())
    assert stored == {"0": [], "3": ["x"]}


def test_utc_datetime_process_bind_param_strips_tzinfo():
    utc_type = UTCDateTime()
    cet = timezone(timedelta(hours=1))
    mock_dialect = MagicMock()
    mock_dialect.name = 'postgresql'

    processed_value = utc_type.process_bind_param(datetime(2030, 1, 7, 11, 0, tzinfo=cet), mock_dialect)
    assert processed_value.tzinfo is None
    assert processed_value == datetime(2030, 1, 7, 10, 0)


def test_utc_datetime_process_result_value_naive_explicit():
    utc_type = UTCDateTime()
    naive_db_dt = datetime(2030, 1, 1, 10, 0, 0)
    mock_dialect = MagicMock()
    mock_dialect.name = 'postgresql'

    processed_value = utc_type.process_result_value(naive_db_dt, mock_dialect)
    assert processed_value.tzinfo == timezone.utc
    assert processed_value == naive_db_dt.replace(tzinfo=timezone.utc)


def test_utc_datetime_load_dialect_impl_non_sqlite():
    utc_type = UTCDateTime()
    mock_dialect = MagicMock()
    mock_dialect.name = 'postgresql'
    mock_dialect.type_descriptor.return_value = "mock_type_descriptor"

    result = utc_type.load_dialect_impl(mock_dialect)
    assert result == "mock_type_descriptor"
    mock_dialect.type_descriptor.assert_called_once()
    args, kwargs = mock_dialect.type_descriptor.call_args
    assert isinstance(args[0], UTCDateTime.impl)
    assert args[0].timezone is True
