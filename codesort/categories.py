"""
Category Database — every output bucket a recovered file can land in.

DESIGN RATIONALE
────────────────
Recovered files lose their names, so each category is an explicit,
immutable record instead of a loose string:
  • label        — stable identifier used by rules and logs ("python", "vue-ts")
  • directory    — output container under the destination root
  • description  — human-readable name for the closing summary
  • extension    — extension given to files when renaming by category
  • composite    — format built from delimited sections (template/script/style)

Exported:
  • ALL_CATEGORIES    — ordered tuple, also the fallback tie-break order
  • CATEGORY_BY_LABEL — dict label → Category
  • get_category / get_all_labels / project_category
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Category:
    """Describes one classification outcome and its output container."""
    label: str
    directory: str
    description: str
    extension: str = "txt"
    composite: bool = False


# ══════════════════════════════════════════════════════════════
#  C O M P O S I T E   M A R K U P
# ══════════════════════════════════════════════════════════════

CAT_VUE_TS = Category(
    label="vue-ts", directory="vue-ts", extension="vue",
    description="Vue single-file component (TypeScript)", composite=True,
)

CAT_VUE = Category(
    label="vue", directory="vue", extension="vue",
    description="Vue single-file component", composite=True,
)

CAT_HTML = Category(label="html", directory="html", extension="html",
                    description="HTML document")

# ══════════════════════════════════════════════════════════════
#  F R A M E W O R K S
# ══════════════════════════════════════════════════════════════

CAT_ANGULAR = Category(label="angular", directory="angular", extension="ts",
                       description="Angular module / component")
CAT_REACT = Category(label="react", directory="react", extension="jsx",
                     description="React component")
CAT_NUXT = Category(label="nuxt", directory="nuxt", extension="ts",
                    description="Nuxt application code")
CAT_VITE = Category(label="vite", directory="vite", extension="ts",
                    description="Vite configuration")
CAT_SUPABASE = Category(label="supabase", directory="supabase", extension="ts",
                        description="Supabase client code")
CAT_EXPRESS = Category(label="express", directory="express", extension="js",
                       description="Express server")

# ══════════════════════════════════════════════════════════════
#  L A N G U A G E S
# ══════════════════════════════════════════════════════════════

CAT_TYPESCRIPT = Category(label="typescript", directory="ts", extension="ts",
                          description="TypeScript source")
CAT_JAVASCRIPT = Category(label="javascript", directory="js", extension="js",
                          description="JavaScript source")
CAT_PYTHON = Category(label="python", directory="py", extension="py",
                      description="Python source")
CAT_SHELL = Category(label="shell", directory="sh", extension="sh",
                     description="Shell script")
CAT_RUBY = Category(label="ruby", directory="rb", extension="rb",
                    description="Ruby source")
CAT_PERL = Category(label="perl", directory="pl", extension="pl",
                    description="Perl source")
CAT_PHP = Category(label="php", directory="php", extension="php",
                   description="PHP source")
CAT_RUST = Category(label="rust", directory="rust", extension="rs",
                    description="Rust source")
CAT_GO = Category(label="go", directory="go", extension="go",
                  description="Go source")
CAT_JAVA = Category(label="java", directory="java", extension="java",
                    description="Java source")
CAT_KOTLIN = Category(label="kotlin", directory="kt", extension="kt",
                      description="Kotlin source")
CAT_CPP = Category(label="cpp", directory="cpp", extension="cpp",
                   description="C++ source")
CAT_C = Category(label="c", directory="c", extension="c",
                 description="C source")
CAT_SQL = Category(label="sql", directory="sql", extension="sql",
                   description="SQL script")

# ══════════════════════════════════════════════════════════════
#  D A T A   /   D O C U M E N T S
# ══════════════════════════════════════════════════════════════

CAT_CSS = Category(label="css", directory="css", extension="css",
                   description="Stylesheet")
CAT_JSON = Category(label="json", directory="json", extension="json",
                    description="JSON document")
CAT_MARKDOWN = Category(label="markdown", directory="md", extension="md",
                        description="Markdown document")
CAT_YAML = Category(label="yaml", directory="yml", extension="yml",
                    description="YAML document")
CAT_ENV = Category(label="env", directory="env", extension="env",
                   description="Environment file")

# ── Catch-alls ──
CAT_BINARY = Category(label="binary", directory="binary", extension="bin",
                      description="Binary data")
CAT_UNKNOWN = Category(label="unknown", directory="unknown", extension="txt",
                       description="Unclassified text")


# ═════════════════════════════════════════════════════════════
#  Convenience helpers
# ═════════════════════════════════════════════════════════════

ALL_CATEGORIES: tuple[Category, ...] = (
    # Composite markup
    CAT_VUE_TS, CAT_VUE, CAT_HTML,
    # Frameworks
    CAT_ANGULAR, CAT_REACT, CAT_NUXT, CAT_VITE, CAT_SUPABASE, CAT_EXPRESS,
    # Languages
    CAT_TYPESCRIPT, CAT_JAVASCRIPT, CAT_PYTHON, CAT_SHELL, CAT_RUBY,
    CAT_PERL, CAT_PHP, CAT_RUST, CAT_GO, CAT_JAVA, CAT_KOTLIN,
    CAT_CPP, CAT_C, CAT_SQL,
    # Data / documents
    CAT_CSS, CAT_JSON, CAT_MARKDOWN, CAT_YAML, CAT_ENV,
    # Catch-alls
    CAT_BINARY, CAT_UNKNOWN,
)

CATEGORY_BY_LABEL: dict[str, Category] = {c.label: c for c in ALL_CATEGORIES}

PROJECTS_DIRECTORY = "projects"


def get_category(label: str) -> Category:
    """Look up a category by label. Raises KeyError for unknown labels."""
    return CATEGORY_BY_LABEL[label]


def get_all_labels() -> list[str]:
    return [c.label for c in ALL_CATEGORIES]


def get_composite_categories() -> list[Category]:
    return [c for c in ALL_CATEGORIES if c.composite]


def project_category(keyword: str) -> Category:
    """Category for files routed by a project keyword."""
    safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in keyword)
    # "." and ".." would escape projects/
    if not safe.strip("."):
        safe = "_"
    return Category(
        label=f"project:{keyword}",
        directory=f"{PROJECTS_DIRECTORY}/{safe}",
        description=f"Project files matching '{keyword}'",
        extension="",
    )
