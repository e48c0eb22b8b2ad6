import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chiffrage.api.deps import get_db, get_event_sink
from chiffrage.crud import projet as projet_crud
from chiffrage.db import models  # noqa: F401
from chiffrage.db.base import Base
from chiffrage.db.session import create_db_engine
from chiffrage.main import app
from chiffrage.schemas.niveau import HierarchyLabels
from chiffrage.schemas.projet import ProjetCreate
from chiffrage.services.events import CollectingEventSink
from chiffrage.services.placement import PlacementService


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def projet(db):
    return projet_crud.create_projet(db, ProjetCreate(nom_projet="Résidence Les Tilleuls"))


@pytest.fixture
def sink():
    return CollectingEventSink()


@pytest.fixture
def service(db, sink):
    return PlacementService(db, event_sink=sink, defer_project_cascade=True)


@pytest.fixture
def cable_labels():
    return HierarchyLabels(
        niveau_1="Elec",
        niveau_2="LotA",
        niveau_3="Power",
        niveau_4="",
        niveau_5=None,
        niveau_6="Cable 3x2.5",
    )


@pytest.fixture
def labels_factory():
    def make(leaf, niveau_2="LotA", niveau_4=None, niveau_5=None):
        return HierarchyLabels(
            niveau_1="Elec",
            niveau_2=niveau_2,
            niveau_3="Power",
            niveau_4=niveau_4,
            niveau_5=niveau_5,
            niveau_6=leaf,
        )

    return make


@pytest.fixture
def client(session_factory, sink):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_sink] = lambda: sink
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
