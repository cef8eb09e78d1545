from sqlalchemy import DateTime

from models import User, Receipt, utcnow


def _column_type(model, name):
    return model.__table__.c[name].type


def test_datetime_columns_store_naive_utc():
    for model, name in [(User, "createdAt"), (User, "oauth_token_expiry"), (Receipt, "uploadDate")]:
        column_type = _column_type(model, name)
        assert type(column_type) is DateTime
        assert column_type.timezone is False


def test_utcnow_is_naive():
    assert utcnow().tzinfo is None
