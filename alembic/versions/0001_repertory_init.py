"""0001_repertory_init

repertory reference data (symptoms, rubrics, remedies, grades) + case records + updated_at trigger
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_repertory_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        "symptoms",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("code", sa.String(120), nullable=False),
        sa.Column("name", sa.String(250), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("modality", sa.String(60), nullable=False, server_default=sa.text("'classical_homeopathy'")),
        sa.UniqueConstraint("code", "modality", name="uq_symptoms_code_modality"),
        sa.CheckConstraint(
            "category IN ('mental', 'general', 'particular', 'modality')",
            name="chk_symptoms_category",
        ),
    )

    op.create_table(
        "symptom_synonyms",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("symptom_id", sa.Uuid(), sa.ForeignKey("symptoms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("synonym", sa.String(250), nullable=False),
    )
    op.create_index("ix_symptom_synonyms_symptom_id", "symptom_synonyms", ["symptom_id"])
    op.execute("CREATE INDEX ix_symptom_synonyms_lower ON symptom_synonyms (lower(synonym));")

    op.create_table(
        "rubrics",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("repertory_type", sa.String(60), nullable=False),
        sa.Column("chapter", sa.String(120), nullable=False),
        sa.Column("rubric_text", sa.Text(), nullable=False),
        sa.Column("modality", sa.String(60), nullable=False, server_default=sa.text("'classical_homeopathy'")),
        sa.CheckConstraint("length(rubric_text) > 0", name="chk_rubrics_nonempty_text"),
    )
    op.create_index("ix_rubrics_repertory_type", "rubrics", ["repertory_type"])
    op.create_index("ix_rubrics_chapter", "rubrics", ["chapter"])

    op.create_table(
        "rubric_symptoms",
        sa.Column("rubric_id", sa.Uuid(), sa.ForeignKey("rubrics.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("symptom_code", sa.String(120), primary_key=True),
    )
    op.create_index("ix_rubric_symptoms_code", "rubric_symptoms", ["symptom_code"])

    op.create_table(
        "remedies",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("category", sa.String(80), nullable=False, server_default=sa.text("''")),
        sa.Column("constitution_traits", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("modalities_better", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("modalities_worse", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("clinical_indications", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("incompatibilities", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("keynotes", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("supported_potencies", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("pathogenesis", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("clinical_notes", sa.Text(), nullable=False, server_default=sa.text("''")),
    )

    op.create_table(
        "rubric_remedies",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("rubric_id", sa.Uuid(), sa.ForeignKey("rubrics.id", ondelete="CASCADE"), nullable=False),
        sa.Column("remedy_id", sa.Uuid(), sa.ForeignKey("remedies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("grade", sa.Integer(), nullable=False),
        sa.Column("repertory_type", sa.String(60), nullable=False),
        sa.UniqueConstraint("rubric_id", "remedy_id", "repertory_type", name="uq_rubric_remedy_repertory"),
        sa.CheckConstraint("grade BETWEEN 1 AND 4", name="chk_rubric_remedies_grade_range"),
    )
    op.create_index("ix_rubric_remedies_rubric_id", "rubric_remedies", ["rubric_id"])
    op.create_index("ix_rubric_remedies_remedy_id", "rubric_remedies", ["remedy_id"])

    op.create_table(
        "case_records",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("doctor_id", sa.String(120), nullable=False),
        sa.Column("patient_id", sa.String(120), nullable=False),
        sa.Column("normalized_case", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("selected_rubrics", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("engine_output", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("final_remedy", postgresql.JSONB(), nullable=True),
        sa.Column("final_remedy_id", sa.String(120), nullable=True),
        sa.Column("outcome_status", sa.String(30), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("follow_up_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "outcome_status IN ('pending', 'improved', 'no_change', 'worsened', 'not_followed')",
            name="chk_case_records_outcome_status",
        ),
    )
    op.create_index("ix_case_records_doctor_patient", "case_records", ["doctor_id", "patient_id", "created_at"])
    op.create_index("ix_case_records_final_remedy_id", "case_records", ["final_remedy_id"])

    op.execute(
        """
        CREATE OR REPLACE FUNCTION set_updated_at() RETURNS trigger AS $$
        BEGIN
            NEW.updated_at = now();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_case_records_updated_at
        BEFORE UPDATE ON case_records
        FOR EACH ROW EXECUTE FUNCTION set_updated_at();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_case_records_updated_at ON case_records;")
    op.execute("DROP FUNCTION IF EXISTS set_updated_at();")
    op.drop_table("case_records")
    op.drop_table("rubric_remedies")
    op.drop_table("remedies")
    op.drop_table("rubric_symptoms")
    op.drop_table("rubrics")
    op.drop_table("symptom_synonyms")
    op.drop_table("symptoms")
