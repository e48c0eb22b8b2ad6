"""init schema chiffrage"""
revision = '3c1f8a2d9e47'
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _niveau_columns(level: int) -> list:
    return [
        sa.Column(f'id_niveau_{level}', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=False),
        sa.Column('label_key', sa.String(length=255), nullable=False),
        sa.Column('scope_key', sa.String(length=64), nullable=False),
    ]


def upgrade() -> None:
    op.create_table('niveau_1',
    *_niveau_columns(1),
    sa.PrimaryKeyConstraint('id_niveau_1'),
    sa.UniqueConstraint('scope_key', 'label_key', name='uq_niveau_1_label')
    )
    op.create_table('niveau_2',
    *_niveau_columns(2),
    sa.Column('id_niv_1', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['id_niv_1'], ['niveau_1.id_niveau_1'], ),
    sa.PrimaryKeyConstraint('id_niveau_2'),
    sa.UniqueConstraint('scope_key', 'label_key', name='uq_niveau_2_label')
    )
    op.create_table('niveau_3',
    *_niveau_columns(3),
    sa.Column('id_niv_2', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['id_niv_2'], ['niveau_2.id_niveau_2'], ),
    sa.PrimaryKeyConstraint('id_niveau_3'),
    sa.UniqueConstraint('scope_key', 'label_key', name='uq_niveau_3_label')
    )
    op.create_table('niveau_4',
    *_niveau_columns(4),
    sa.Column('id_niv_3', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['id_niv_3'], ['niveau_3.id_niveau_3'], ),
    sa.PrimaryKeyConstraint('id_niveau_4'),
    sa.UniqueConstraint('scope_key', 'label_key', name='uq_niveau_4_label')
    )
    op.create_table('niveau_5',
    *_niveau_columns(5),
    sa.Column('id_niv_3', sa.Integer(), nullable=False),
    sa.Column('id_niv_4', sa.Integer(), nullable=True),
    sa.ForeignKeyConstraint(['id_niv_3'], ['niveau_3.id_niveau_3'], ),
    sa.ForeignKeyConstraint(['id_niv_4'], ['niveau_4.id_niveau_4'], ),
    sa.PrimaryKeyConstraint('id_niveau_5'),
    sa.UniqueConstraint('scope_key', 'label_key', name='uq_niveau_5_label')
    )
    op.create_table('niveau_6',
    *_niveau_columns(6),
    sa.Column('id_niv_3', sa.Integer(), nullable=False),
    sa.Column('id_niv_4', sa.Integer(), nullable=True),
    sa.Column('id_niv_5', sa.Integer(), nullable=True),
    sa.ForeignKeyConstraint(['id_niv_3'], ['niveau_3.id_niveau_3'], ),
    sa.ForeignKeyConstraint(['id_niv_4'], ['niveau_4.id_niveau_4'], ),
    sa.ForeignKeyConstraint(['id_niv_5'], ['niveau_5.id_niveau_5'], ),
    sa.PrimaryKeyConstraint('id_niveau_6'),
    sa.UniqueConstraint('scope_key', 'label_key', name='uq_niveau_6_label')
    )
    op.create_table('projets',
    sa.Column('id_projet', sa.Integer(), nullable=False),
    sa.Column('nom_projet', sa.String(length=255), nullable=False),
    sa.Column('prix_vente', sa.Numeric(precision=18, scale=2), nullable=False),
    sa.PrimaryKeyConstraint('id_projet')
    )
    op.create_table('projet_lot',
    sa.Column('id_projet_lot', sa.Integer(), nullable=False),
    sa.Column('id_projet', sa.Integer(), nullable=False),
    sa.Column('id_niveau_2', sa.Integer(), nullable=False),
    sa.Column('numero_lot', sa.Integer(), nullable=False),
    sa.Column('designation_lot', sa.String(length=255), nullable=False),
    sa.Column('prix_total', sa.Numeric(precision=18, scale=2), nullable=False),
    sa.ForeignKeyConstraint(['id_projet'], ['projets.id_projet'], ),
    sa.ForeignKeyConstraint(['id_niveau_2'], ['niveau_2.id_niveau_2'], ),
    sa.PrimaryKeyConstraint('id_projet_lot'),
    sa.UniqueConstraint('id_projet', 'id_niveau_2', name='uq_projet_lot_niveau_2')
    )
    op.create_table('ouvrage',
    sa.Column('id_ouvrage', sa.Integer(), nullable=False),
    sa.Column('id_projet_lot', sa.Integer(), nullable=False),
    sa.Column('nom_ouvrage', sa.String(length=255), nullable=False),
    sa.Column('nom_key', sa.String(length=255), nullable=False),
    sa.Column('designation', sa.String(length=50), nullable=False),
    sa.Column('prix_total', sa.Numeric(precision=18, scale=2), nullable=False),
    sa.ForeignKeyConstraint(['id_projet_lot'], ['projet_lot.id_projet_lot'], ),
    sa.PrimaryKeyConstraint('id_ouvrage'),
    sa.UniqueConstraint('id_projet_lot', 'nom_key', name='uq_ouvrage_nom')
    )
    op.create_table('bloc',
    sa.Column('id_bloc', sa.Integer(), nullable=False),
    sa.Column('id_ouvrage', sa.Integer(), nullable=False),
    sa.Column('nom_bloc', sa.String(length=255), nullable=False),
    sa.Column('nom_key', sa.String(length=255), nullable=False),
    sa.Column('designation', sa.String(length=50), nullable=False),
    sa.Column('unite', sa.String(length=20), nullable=True),
    sa.Column('quantite', sa.Numeric(precision=12, scale=3), nullable=True),
    sa.Column('pu', sa.Numeric(precision=15, scale=2), nullable=True),
    sa.Column('pt', sa.Numeric(precision=18, scale=2), nullable=False),
    sa.ForeignKeyConstraint(['id_ouvrage'], ['ouvrage.id_ouvrage'], ),
    sa.PrimaryKeyConstraint('id_bloc'),
    sa.UniqueConstraint('id_ouvrage', 'nom_key', name='uq_bloc_nom')
    )
    op.create_table('structure',
    sa.Column('id_structure', sa.Integer(), nullable=False),
    sa.Column('id_ouvrage', sa.Integer(), nullable=False),
    sa.Column('id_bloc', sa.Integer(), nullable=True),
    sa.Column('action', sa.Enum('ouvrage_seul', 'dans_bloc', name='structurekind'), nullable=False),
    sa.ForeignKeyConstraint(['id_ouvrage'], ['ouvrage.id_ouvrage'], ),
    sa.ForeignKeyConstraint(['id_bloc'], ['bloc.id_bloc'], ),
    sa.PrimaryKeyConstraint('id_structure')
    )
    op.create_index('uq_structure_ouvrage_bloc', 'structure', ['id_ouvrage', 'id_bloc'], unique=True,
                    sqlite_where=sa.text('id_bloc IS NOT NULL'),
                    postgresql_where=sa.text('id_bloc IS NOT NULL'))
    op.create_index('uq_structure_ouvrage_seul', 'structure', ['id_ouvrage'], unique=True,
                    sqlite_where=sa.text('id_bloc IS NULL'),
                    postgresql_where=sa.text('id_bloc IS NULL'))
    op.create_table('projet_article',
    sa.Column('id_projet_article', sa.Integer(), nullable=False),
    sa.Column('id_structure', sa.Integer(), nullable=False),
    sa.Column('id_niveau_6', sa.Integer(), nullable=True),
    sa.Column('quantite', sa.Numeric(precision=12, scale=3), nullable=True),
    sa.Column('prix_unitaire_ht', sa.Numeric(precision=15, scale=2), nullable=True),
    sa.Column('tva', sa.Numeric(precision=5, scale=2), nullable=True),
    sa.Column('prix_total_ht', sa.Numeric(precision=18, scale=2), nullable=True),
    sa.Column('total_ttc', sa.Numeric(precision=18, scale=2), nullable=True),
    sa.Column('localisation', sa.String(length=255), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('designation_article', sa.String(length=255), nullable=True),
    sa.ForeignKeyConstraint(['id_structure'], ['structure.id_structure'], ),
    sa.ForeignKeyConstraint(['id_niveau_6'], ['niveau_6.id_niveau_6'], ),
    sa.PrimaryKeyConstraint('id_projet_article')
    )
    op.create_table('evenements',
    sa.Column('id_evenement', sa.Integer(), nullable=False),
    sa.Column('action', sa.String(length=50), nullable=False),
    sa.Column('id_projet', sa.Integer(), nullable=True),
    sa.Column('id_projet_article', sa.Integer(), nullable=True),
    sa.Column('champs', sa.JSON(), nullable=False),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.PrimaryKeyConstraint('id_evenement')
    )


def downgrade() -> None:
    op.drop_table('evenements')
    op.drop_table('projet_article')
    op.drop_index('uq_structure_ouvrage_seul', table_name='structure')
    op.drop_index('uq_structure_ouvrage_bloc', table_name='structure')
    op.drop_table('structure')
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('DROP TYPE IF EXISTS structurekind')
    op.drop_table('bloc')
    op.drop_table('ouvrage')
    op.drop_table('projet_lot')
    op.drop_table('projets')
    op.drop_table('niveau_6')
    op.drop_table('niveau_5')
    op.drop_table('niveau_4')
    op.drop_table('niveau_3')
    op.drop_table('niveau_2')
    op.drop_table('niveau_1')
