"""intake_schema

Create the intake tables: clients, projects, questionnaires, questions,
answers and proposals.

Revision ID: 5e1f0a7c2b91
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5e1f0a7c2b91"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "clients" not in existing_tables:
        op.create_table(
            "clients",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("client_type", sa.String(length=40), nullable=True),
            sa.Column("industry", sa.String(length=120), nullable=True),
            sa.Column("contact_name", sa.String(length=200), nullable=True),
            sa.Column("contact_email", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("project_type", sa.String(length=40), nullable=False, server_default="WEBSITE"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="DRAFT"),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_client_id", "projects", ["client_id"])

    if "questionnaires" not in existing_tables:
        op.create_table(
            "questionnaires",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name", "version", name="uq_questionnaires_name_version"),
        )
        op.create_index("ix_questionnaires_is_active", "questionnaires", ["is_active"])

    if "questions" not in existing_tables:
        op.create_table(
            "questions",
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("questionnaire_id", sa.Integer(), nullable=False),
            sa.Column("phase", sa.String(length=20), nullable=False),
            sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("question_text", sa.Text(), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="TEXT"),
            sa.Column("options", sa.JSON(), nullable=True),
            sa.Column("show_if", sa.JSON(), nullable=True),
            sa.ForeignKeyConstraint(["questionnaire_id"], ["questionnaires.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_questions_questionnaire_id", "questions", ["questionnaire_id"])
        op.create_index(
            "ix_questions_questionnaire_phase_order",
            "questions",
            ["questionnaire_id", "phase", "order"],
        )

    if "answers" not in existing_tables:
        op.create_table(
            "answers",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("question_id", sa.String(length=64), nullable=False),
            sa.Column("value", sa.Text(), nullable=False, server_default=""),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "question_id", name="uq_answers_project_question"),
        )
        op.create_index("ix_answers_project_id", "answers", ["project_id"])
        op.create_index("ix_answers_question_id", "answers", ["question_id"])

    if "proposals" not in existing_tables:
        op.create_table(
            "proposals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.Column("document_body", sa.Text(), nullable=False),
            sa.Column("questionnaire_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["questionnaire_id"], ["questionnaires.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "version", name="uq_proposals_project_version"),
        )
        op.create_index("ix_proposals_project_id", "proposals", ["project_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "proposals" in existing_tables:
        op.drop_index("ix_proposals_project_id", table_name="proposals")
        op.drop_table("proposals")
    if "answers" in existing_tables:
        op.drop_index("ix_answers_question_id", table_name="answers")
        op.drop_index("ix_answers_project_id", table_name="answers")
        op.drop_table("answers")
    if "questions" in existing_tables:
        op.drop_index("ix_questions_questionnaire_phase_order", table_name="questions")
        op.drop_index("ix_questions_questionnaire_id", table_name="questions")
        op.drop_table("questions")
    if "questionnaires" in existing_tables:
        op.drop_index("ix_questionnaires_is_active", table_name="questionnaires")
        op.drop_table("questionnaires")
    if "projects" in existing_tables:
        op.drop_index("ix_projects_client_id", table_name="projects")
        op.drop_table("projects")
    if "clients" in existing_tables:
        op.drop_table("clients")
