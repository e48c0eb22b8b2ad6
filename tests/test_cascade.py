from decimal import Decimal

import pytest

from chiffrage.core.exceptions import StructuralNotFound
from chiffrage.crud import projet_article as article_crud
from chiffrage.crud import structure as structure_crud
from chiffrage.services.cascade import AggregationCascade
from chiffrage.services.hierarchy import HierarchyResolver


@pytest.fixture
def tree(db, projet, cable_labels):
    path = HierarchyResolver(db).resolve_path(cable_labels)
    lot, _ = structure_crud.ensure_lot(db, projet.id_projet, path.niveau_2)
    ouvrage, _ = structure_crud.ensure_ouvrage(db, lot, "Distribution")
    bloc, _ = structure_crud.ensure_bloc(db, ouvrage, "Tableau", unite="u", quantite=10)
    in_bloc, _ = structure_crud.ensure_structure(db, ouvrage.id_ouvrage, bloc.id_bloc)
    direct, _ = structure_crud.ensure_structure(db, ouvrage.id_ouvrage)
    return {
        "leaf": path.niveau_6,
        "lot": lot,
        "ouvrage": ouvrage,
        "bloc": bloc,
        "in_bloc": in_bloc,
        "direct": direct,
    }


def _article(db, structure, leaf, prix):
    return article_crud.create_projet_article(
        db, structure.id_structure, leaf, {"quantite": 1, "prix_unitaire_ht": prix, "tva": 0}
    )


def test_bloc_ouvrage_and_projet_totals(db, projet, tree):
    cascade = AggregationCascade(db)
    _article(db, tree["in_bloc"], tree["leaf"], 100)
    second = _article(db, tree["in_bloc"], tree["leaf"], 150)

    change = cascade.on_line_item_changed(tree["in_bloc"].id_structure, second.id_projet_article)

    assert tree["bloc"].pt == Decimal("250")
    assert tree["bloc"].pu == Decimal("25")
    assert tree["ouvrage"].prix_total == Decimal("250")
    assert tree["lot"].prix_total == Decimal("250")
    assert projet.prix_vente == Decimal("250")
    assert change.prix_vente == Decimal("250")
    assert change.as_dict()["id_bloc"] == tree["bloc"].id_bloc

    article_crud.delete_projet_article(db, second)
    cascade.on_line_item_changed(tree["in_bloc"].id_structure)

    assert tree["bloc"].pt == Decimal("100")
    assert tree["ouvrage"].prix_total == Decimal("100")
    assert projet.prix_vente == Decimal("100")


def test_ouvrage_total_spans_direct_and_bloc_placements(db, projet, tree):
    cascade = AggregationCascade(db)
    _article(db, tree["in_bloc"], tree["leaf"], 100)
    _article(db, tree["direct"], tree["leaf"], 40)

    cascade.on_line_item_changed(tree["direct"].id_structure)
    cascade.on_line_item_changed(tree["in_bloc"].id_structure)

    assert tree["bloc"].pt == Decimal("100")
    assert tree["ouvrage"].prix_total == Decimal("140")
    assert projet.prix_vente == Decimal("140")


def test_bloc_without_quantity_has_no_unit_price(db, tree):
    tree["bloc"].quantite = None
    _article(db, tree["in_bloc"], tree["leaf"], 80)

    AggregationCascade(db).recompute_bloc(tree["bloc"].id_bloc)

    assert tree["bloc"].pt == Decimal("80")
    assert tree["bloc"].pu is None


def test_placeholders_and_unpriced_items_count_as_zero(db, projet, tree):
    article_crud.add_placeholder(db, tree["direct"].id_structure)
    article_crud.create_projet_article(db, tree["direct"].id_structure, tree["leaf"], {"quantite": 3})

    change = AggregationCascade(db).on_line_item_changed(tree["direct"].id_structure)

    assert tree["ouvrage"].prix_total == Decimal("0")
    assert change.prix_vente == Decimal("0")


def test_recompute_is_repeatable(db, projet, tree):
    cascade = AggregationCascade(db)
    _article(db, tree["in_bloc"], tree["leaf"], 100)

    first = cascade.on_line_item_changed(tree["in_bloc"].id_structure)
    second = cascade.on_line_item_changed(tree["in_bloc"].id_structure)

    assert first.as_dict() == second.as_dict()


def test_unknown_structure(db):
    with pytest.raises(StructuralNotFound):
        AggregationCascade(db).on_line_item_changed(12345)
