import logging

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from jobrow import RawJob


@pytest.fixture
def sqlite_session():
    logging.getLogger("jobrow").setLevel(logging.DEBUG)

    engine = create_engine("sqlite:///:memory:")
    RawJob.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    RawJob.metadata.drop_all(engine)
    engine.dispose()
