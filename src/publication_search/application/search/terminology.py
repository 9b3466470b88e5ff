"""
Medical terminology tables used by the query builder and the relevance gate.

Three small, hand-curated vocabularies:

1. CONDITION_SYNONYMS / BIOMARKER_TERMS - lay and abbreviated names mapped to
   their clinical equivalents, used to OR synonyms into concept clauses
2. MESH_MAPPINGS - lay phrases mapped to the MeSH heading PubMed indexes under
3. EXPOSURE_FAMILIES - environmental exposure vocabularies ("mold toxicity")
   whose tokens are protected from stop-word removal and routed into the
   modifier concept

Example:
    >>> expand_with_synonyms("breast cancer")
    'breast cancer OR Malignant Neoplasm of Breast OR Breast Carcinoma OR Mammary Carcinoma OR Neoplasm OR Malignancy OR Carcinoma OR Tumor'
    >>> map_to_mesh("heart attack")
    'Myocardial Infarction'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

CONDITION_SYNONYMS: dict[str, list[str]] = {
    # Neurological
    "lou gehrig's disease": ["Amyotrophic Lateral Sclerosis", "ALS", "Motor Neuron Disease"],
    "lou gehrigs disease": ["Amyotrophic Lateral Sclerosis", "ALS", "Motor Neuron Disease"],
    "als": ["Amyotrophic Lateral Sclerosis", "Motor Neuron Disease"],
    "amyotrophic lateral sclerosis": ["ALS", "Motor Neuron Disease", "Lou Gehrig's Disease"],
    # Oncology
    "breast cancer": ["Malignant Neoplasm of Breast", "Breast Carcinoma", "Mammary Carcinoma"],
    "mammary carcinoma": ["Breast Cancer", "Malignant Neoplasm of Breast"],
    "malignant neoplasm of breast": ["Breast Cancer", "Breast Carcinoma"],
    "glioblastoma": ["Glioblastoma Multiforme", "GBM", "Grade IV Astrocytoma"],
    "gbm": ["Glioblastoma", "Glioblastoma Multiforme", "Grade IV Astrocytoma"],
    "grade iv astrocytoma": ["Glioblastoma", "GBM"],
    # Neurodegenerative
    "alzheimer's": ["Alzheimer Disease", "Alzheimer's Disease", "AD", "Dementia"],
    "alzheimer": ["Alzheimer Disease", "Alzheimer's Disease", "AD"],
    "ad": ["Alzheimer Disease", "Alzheimer's Disease"],
    "parkinson's": ["Parkinson Disease", "Parkinson's Disease", "PD"],
    "parkinson": ["Parkinson Disease", "Parkinson's Disease", "PD"],
    "pd": ["Parkinson Disease", "Parkinson's Disease"],
    # General oncology
    "cancer": ["Neoplasm", "Malignancy", "Carcinoma", "Tumor"],
    "tumor": ["Neoplasm", "Cancer", "Malignancy"],
    "carcinoma": ["Cancer", "Malignancy", "Neoplasm"],
    # Metabolic
    "diabetes": ["Diabetes Mellitus", "DM"],
    "type 2 diabetes": ["Type 2 Diabetes Mellitus", "T2DM", "Non-Insulin Dependent Diabetes"],
    "type 1 diabetes": ["Type 1 Diabetes Mellitus", "T1DM", "Insulin Dependent Diabetes"],
    # Cardiovascular
    "heart disease": ["Cardiovascular Disease", "Heart Disease", "Cardiac Disease"],
    "heart attack": ["Myocardial Infarction", "MI", "Acute Myocardial Infarction"],
    "mi": ["Myocardial Infarction", "Heart Attack"],
    "stroke": ["Cerebrovascular Accident", "CVA", "Brain Attack"],
    "cva": ["Stroke", "Cerebrovascular Accident"],
    # Autoimmune
    "multiple sclerosis": ["MS", "Disseminated Sclerosis"],
    "ms": ["Multiple Sclerosis", "Disseminated Sclerosis"],
    "rheumatoid arthritis": ["RA", "Rheumatoid Arthritis"],
    "ra": ["Rheumatoid Arthritis"],
}

BIOMARKER_TERMS: dict[str, list[str]] = {
    "idh1": ["IDH1 mutation", "Isocitrate Dehydrogenase 1", "IDH1-mutant"],
    "idh": ["IDH1", "IDH2", "Isocitrate Dehydrogenase"],
    "brca": ["BRCA1", "BRCA2", "BRCA mutation"],
    "brca1": ["BRCA1 mutation", "Breast Cancer Gene 1"],
    "brca2": ["BRCA2 mutation", "Breast Cancer Gene 2"],
    "her2": ["HER2/neu", "ERBB2", "Human Epidermal Growth Factor Receptor 2"],
    "egfr": ["EGFR", "Epidermal Growth Factor Receptor"],
    "kras": ["KRAS mutation", "Kirsten Rat Sarcoma"],
    "braf": ["BRAF mutation", "B-Raf"],
    "p53": ["TP53", "Tumor Protein p53"],
    "alk": ["ALK", "Anaplastic Lymphoma Kinase"],
    "ros1": ["ROS1", "ROS Proto-Oncogene 1"],
    "tau": ["Tau protein", "MAPT", "Microtubule-Associated Protein Tau"],
    "amyloid-beta": ["Amyloid beta", "Aβ", "Beta-amyloid"],
    "amyloid": ["Amyloid-beta", "Aβ"],
    "psa": ["Prostate-Specific Antigen", "PSA"],
    "cea": ["Carcinoembryonic Antigen", "CEA"],
    "ca125": ["CA-125", "Cancer Antigen 125"],
    "ca19-9": ["CA 19-9", "Carbohydrate Antigen 19-9"],
    "pd-l1": ["PD-L1", "Programmed Death-Ligand 1", "CD274"],
    "msi": ["MSI", "Microsatellite Instability"],
    "tmb": ["TMB", "Tumor Mutational Burden"],
}

# First match wins
MESH_MAPPINGS: list[tuple[str, str]] = [
    ("lou gehrig's disease", "Amyotrophic Lateral Sclerosis"),
    ("lou gehrigs disease", "Amyotrophic Lateral Sclerosis"),
    ("breast cancer", "Malignant Neoplasm of Breast"),
    ("heart attack", "Myocardial Infarction"),
    ("stroke", "Cerebrovascular Accident"),
]


@lru_cache(maxsize=256)
def _term_pattern(term: str) -> re.Pattern[str]:
    """Word-bounded, case-insensitive pattern; inner spaces match any whitespace."""
    body = r"\s+".join(re.escape(part) for part in term.split())
    return re.compile(rf"\b{body}\b", re.IGNORECASE)


def expand_with_synonyms(query: str) -> str:
    """
    OR together the query and every synonym of a term it contains.

    Returns the query unchanged when nothing in either table matches.
    """
    if not query or not query.strip():
        return query

    expanded: dict[str, None] = {query: None}
    for table in (CONDITION_SYNONYMS, BIOMARKER_TERMS):
        for term, synonyms in table.items():
            if _term_pattern(term).search(query):
                for synonym in synonyms:
                    expanded.setdefault(synonym, None)

    if len(expanded) == 1:
        return query
    return " OR ".join(expanded)


def synonyms_for(query: str) -> list[str]:
    """The synonym list alone, without the original query."""
    expanded = expand_with_synonyms(query)
    if expanded == query:
        return []
    return [s for s in expanded.split(" OR ") if s != query]


def map_to_mesh(term: str) -> str:
    """MeSH heading for a lay phrase, or ``term`` itself when unmapped."""
    for phrase, heading in MESH_MAPPINGS:
        if _term_pattern(phrase).search(term or ""):
            return heading
    return term


# =============================================================================
# Exposure families
# =============================================================================

@dataclass(frozen=True)
class ExposureFamily:
    """
    Vocabulary of one environmental exposure.

    ``tokens`` and ``phrases`` detect the family in a query; when active,
    both are OR-ed into the exposure clause. ``context_tokens`` name the
    setting ("indoor", "building") and only count next to another family
    term. ``toxicity_tokens`` build the strictest tier's extra clause.
    ``protected_tokens`` are never dropped as stop words.
    """
    key: str
    label: str
    tokens: tuple[str, ...]
    phrases: tuple[str, ...]
    toxicity_tokens: tuple[str, ...]
    protected_tokens: tuple[str, ...]
    context_tokens: tuple[str, ...] = ()

    def matched_terms(self, query: str) -> list[str]:
        """Family phrases and tokens present in ``query`` as whole words."""
        text = query or ""
        return [term for term in (*self.phrases, *self.tokens) if _term_pattern(term).search(text)]

    def is_active(self, query: str) -> bool:
        """True when a phrase or a non-context token appears as whole words."""
        return any(term not in self.context_tokens for term in self.matched_terms(query))


EXPOSURE_FAMILIES: tuple[ExposureFamily, ...] = (
    ExposureFamily(
        key="mold_toxicity",
        label="mold toxicity",
        tokens=(
            "mold", "mould", "fungal", "fungus", "mycotoxin", "mycotoxins",
            "stachybotrys", "damp", "dampness", "indoor", "water-damaged", "building",
        ),
        phrases=(
            "mold toxicity", "mould toxicity", "mycotoxin exposure", "mycotoxin poisoning",
            "indoor mold", "indoor mould", "indoor dampness", "indoor damp",
            "indoor damp air", "water-damaged building", "water damaged building",
            "indoor damp environment",
        ),
        toxicity_tokens=("toxicity", "toxic", "poisoning", "exposure", "environmental exposure"),
        protected_tokens=(
            "mold", "mould", "mycotoxin", "mycotoxins", "stachybotrys", "dampness",
            "water-damaged", "water damaged", "environmental exposure", "toxicity",
            "toxic", "poisoning", "exposure", "trigger",
        ),
        context_tokens=("indoor", "building"),
    ),
)

PROTECTED_EXPOSURE_TOKENS: frozenset[str] = frozenset(
    token for family in EXPOSURE_FAMILIES for token in family.protected_tokens
)

# Longest first so "indoor damp air" wins over "indoor damp"
EXPOSURE_PHRASES: tuple[str, ...] = tuple(
    sorted(
        {phrase for family in EXPOSURE_FAMILIES for phrase in family.phrases},
        key=lambda phrase: (-len(phrase), phrase),
    )
)


def is_protected_exposure_token(token: str) -> bool:
    t = token.lower()
    return (
        t in PROTECTED_EXPOSURE_TOKENS
        or t.startswith(("mold", "mould", "mycotoxin"))
        or t in ("fungal", "fungus")
    )


def active_exposure_families(query: str) -> list[ExposureFamily]:
    return [family for family in EXPOSURE_FAMILIES if family.is_active(query)]
