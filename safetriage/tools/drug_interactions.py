"""Drug Interaction Checker Tool.

Normalizes medication names and screens a prescription against static tables:
drug-drug pairs, drug-class combinations, therapeutic duplication and
pregnancy contraindications.

Names that are not in the tables are kept (lowercased and cleaned) and listed
as unrecognized. They produce no findings; that is a known limitation and
never an error.
"""

import re
from itertools import combinations
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
from safetriage.models.prescription import (
    InteractionFinding,
    PrescriptionReport,
    PrescriptionRequest,
)
from safetriage.models.triage import FindingKind, InteractionSeverity, OverallRisk
import logging

logger = logging.getLogger(__name__)

MAJOR = InteractionSeverity.MAJOR
MODERATE = InteractionSeverity.MODERATE
MINOR = InteractionSeverity.MINOR
CONTRAINDICATED = InteractionSeverity.CONTRAINDICATED


# Brand name and synonym to generic name mapping (common medications)
DRUG_NAME_MAPPING = {
    # Pain/Anti-inflammatory
    "tylenol": "acetaminophen",
    "panadol": "acetaminophen",
    "paracetamol": "acetaminophen",
    "advil": "ibuprofen",
    "motrin": "ibuprofen",
    "brufen": "ibuprofen",
    "aleve": "naproxen",
    "naprosyn": "naproxen",
    "voltaren": "diclofenac",
    "celebrex": "celecoxib",
    "asa": "aspirin",
    "acetylsalicylic acid": "aspirin",
    "disprin": "aspirin",
    "ultram": "tramadol",
    # Cardiovascular
    "prinivil": "lisinopril",
    "zestril": "lisinopril",
    "cozaar": "losartan",
    "norvasc": "amlodipine",
    "lopressor": "metoprolol",
    "toprol": "metoprolol",
    "coumadin": "warfarin",
    "jantoven": "warfarin",
    "plavix": "clopidogrel",
    "xarelto": "rivaroxaban",
    "aldactone": "spironolactone",
    "lasix": "furosemide",
    "lanoxin": "digoxin",
    "cordarone": "amiodarone",
    "k dur": "potassium chloride",
    "potassium": "potassium chloride",
    # Cholesterol
    "lipitor": "atorvastatin",
    "crestor": "rosuvastatin",
    "zocor": "simvastatin",
    "lopid": "gemfibrozil",
    # Diabetes
    "glucophage": "metformin",
    "diabeta": "glyburide",
    "glibenclamide": "glyburide",
    # Mental Health
    "prozac": "fluoxetine",
    "zoloft": "sertraline",
    "celexa": "citalopram",
    "lexapro": "escitalopram",
    "effexor": "venlafaxine",
    "elavil": "amitriptyline",
    "xanax": "alprazolam",
    "ativan": "lorazepam",
    "valium": "diazepam",
    "ambien": "zolpidem",
    "lithobid": "lithium",
    # Antibiotics and antifungals
    "z pack": "azithromycin",
    "zithromax": "azithromycin",
    "biaxin": "clarithromycin",
    "cipro": "ciprofloxacin",
    "avelox": "moxifloxacin",
    "bactrim": "cotrimoxazole",
    "septra": "cotrimoxazole",
    "diflucan": "fluconazole",
    # GI
    "prilosec": "omeprazole",
    "protonix": "pantoprazole",
    # Respiratory
    "proair": "albuterol",
    "ventolin": "albuterol",
    "salbutamol": "albuterol",
    # Other
    "accutane": "isotretinoin",
    "trexall": "methotrexate",
    "synthroid": "levothyroxine",
    "thyroxine": "levothyroxine",
}


# Generic name -> drug classes and pregnancy risk category
DRUG_CATALOG: Dict[str, Dict] = {
    "acetaminophen": {"classes": (), "pregnancy_category": "B"},
    "albuterol": {"classes": (), "pregnancy_category": "C"},
    "alcohol": {"classes": ("cns_depressant",), "pregnancy_category": "X"},
    "alprazolam": {"classes": ("benzodiazepine", "cns_depressant"), "pregnancy_category": "D"},
    "amiodarone": {"classes": ("qt_prolonging",), "pregnancy_category": "D"},
    "amitriptyline": {"classes": ("serotonergic", "qt_prolonging"), "pregnancy_category": "C"},
    "amlodipine": {"classes": (), "pregnancy_category": "C"},
    "amoxicillin": {"classes": (), "pregnancy_category": "B"},
    "aspirin": {"classes": ("antiplatelet", "nsaid"), "pregnancy_category": "D"},
    "atorvastatin": {"classes": ("statin",), "pregnancy_category": "X"},
    "azithromycin": {"classes": ("qt_prolonging",), "pregnancy_category": "B"},
    "celecoxib": {"classes": ("nsaid",), "pregnancy_category": "D"},
    "cetirizine": {"classes": (), "pregnancy_category": "B"},
    "ciprofloxacin": {"classes": ("qt_prolonging",), "pregnancy_category": "C"},
    "citalopram": {"classes": ("serotonergic", "qt_prolonging"), "pregnancy_category": "C"},
    "clarithromycin": {"classes": ("qt_prolonging",), "pregnancy_category": "C"},
    "clopidogrel": {"classes": ("antiplatelet",), "pregnancy_category": "B"},
    "codeine": {"classes": ("opioid", "cns_depressant"), "pregnancy_category": "C"},
    "cotrimoxazole": {"classes": (), "pregnancy_category": "D"},
    "diazepam": {"classes": ("benzodiazepine", "cns_depressant"), "pregnancy_category": "D"},
    "diclofenac": {"classes": ("nsaid",), "pregnancy_category": "D"},
    "digoxin": {"classes": (), "pregnancy_category": "C"},
    "doxycycline": {"classes": (), "pregnancy_category": "D"},
    "escitalopram": {"classes": ("serotonergic",), "pregnancy_category": "C"},
    "fluconazole": {"classes": ("qt_prolonging",), "pregnancy_category": "D"},
    "fluoxetine": {"classes": ("serotonergic",), "pregnancy_category": "C"},
    "furosemide": {"classes": (), "pregnancy_category": "C"},
    "gemfibrozil": {"classes": (), "pregnancy_category": "C"},
    "glyburide": {"classes": (), "pregnancy_category": "C"},
    "ibuprofen": {"classes": ("nsaid",), "pregnancy_category": "D"},
    "isotretinoin": {"classes": (), "pregnancy_category": "X"},
    "levothyroxine": {"classes": (), "pregnancy_category": "A"},
    "lisinopril": {"classes": ("ace_inhibitor",), "pregnancy_category": "D"},
    "lithium": {"classes": (), "pregnancy_category": "D"},
    "lorazepam": {"classes": ("benzodiazepine", "cns_depressant"), "pregnancy_category": "D"},
    "losartan": {"classes": ("arb",), "pregnancy_category": "D"},
    "metformin": {"classes": (), "pregnancy_category": "B"},
    "methotrexate": {"classes": (), "pregnancy_category": "X"},
    "metoprolol": {"classes": (), "pregnancy_category": "C"},
    "morphine": {"classes": ("opioid", "cns_depressant"), "pregnancy_category": "C"},
    "moxifloxacin": {"classes": ("qt_prolonging",), "pregnancy_category": "C"},
    "naproxen": {"classes": ("nsaid",), "pregnancy_category": "D"},
    "omeprazole": {"classes": (), "pregnancy_category": "C"},
    "pantoprazole": {"classes": (), "pregnancy_category": "B"},
    "potassium chloride": {"classes": (), "pregnancy_category": "C"},
    "rivaroxaban": {"classes": (), "pregnancy_category": "C"},
    "rosuvastatin": {"classes": ("statin",), "pregnancy_category": "X"},
    "sertraline": {"classes": ("serotonergic",), "pregnancy_category": "C"},
    "simvastatin": {"classes": ("statin",), "pregnancy_category": "X"},
    "spironolactone": {"classes": (), "pregnancy_category": "D"},
    "tramadol": {"classes": ("opioid", "cns_depressant", "serotonergic"), "pregnancy_category": "C"},
    "venlafaxine": {"classes": ("serotonergic",), "pregnancy_category": "C"},
    "warfarin": {"classes": ("anticoagulant",), "pregnancy_category": "X"},
    "zolpidem": {"classes": ("cns_depressant",), "pregnancy_category": "C"},
}


def _pair(a: str, b: str) -> FrozenSet[str]:
    return frozenset((a, b))


# Drug-drug interaction table. Keys are unordered pairs, so lookups are
# symmetric by construction.
INTERACTIONS: Dict[FrozenSet[str], Dict] = {
    _pair("warfarin", "aspirin"): {
        "severity": MAJOR,
        "description": "Aspirin combined with warfarin significantly increases bleeding risk",
        "management": "Avoid combination unless specifically prescribed by a cardiologist. Requires close INR monitoring and bleeding surveillance.",
    },
    _pair("warfarin", "ibuprofen"): {
        "severity": MAJOR,
        "description": "NSAIDs like ibuprofen can increase bleeding risk when combined with warfarin",
        "management": "Monitor INR more frequently. Consider acetaminophen for pain relief instead.",
    },
    _pair("warfarin", "naproxen"): {
        "severity": MAJOR,
        "description": "NSAIDs like naproxen can increase bleeding risk when combined with warfarin",
        "management": "Avoid NSAIDs with warfarin; use acetaminophen for pain.",
    },
    _pair("warfarin", "diclofenac"): {
        "severity": MAJOR,
        "description": "NSAIDs like diclofenac can increase bleeding risk when combined with warfarin",
        "management": "Avoid NSAIDs with warfarin; use acetaminophen for pain.",
    },
    _pair("clopidogrel", "aspirin"): {
        "severity": MODERATE,
        "description": "Dual antiplatelet therapy increases bleeding risk",
        "management": "Only use together if intentionally prescribed as dual therapy.",
    },
    _pair("clopidogrel", "omeprazole"): {
        "severity": MODERATE,
        "description": "Omeprazole may reduce the antiplatelet effect of clopidogrel",
        "management": "Consider pantoprazole as an alternative acid reducer.",
    },
    _pair("lisinopril", "ibuprofen"): {
        "severity": MODERATE,
        "description": "NSAIDs can reduce the blood pressure-lowering effect of ACE inhibitors like lisinopril",
        "management": "Monitor blood pressure regularly. Use lowest effective NSAID dose for shortest duration.",
    },
    _pair("lisinopril", "potassium chloride"): {
        "severity": MAJOR,
        "description": "ACE inhibitors with potassium supplements can cause dangerously high potassium",
        "management": "Monitor potassium levels regularly; avoid supplements unless directed.",
    },
    _pair("lisinopril", "spironolactone"): {
        "severity": MAJOR,
        "description": "ACE inhibitor with a potassium-sparing diuretic raises hyperkalemia risk",
        "management": "Monitor potassium and kidney function.",
    },
    _pair("losartan", "potassium chloride"): {
        "severity": MAJOR,
        "description": "ARBs with potassium supplements can cause dangerously high potassium",
        "management": "Monitor potassium levels; avoid supplements unless directed.",
    },
    _pair("losartan", "spironolactone"): {
        "severity": MAJOR,
        "description": "ARB with a potassium-sparing diuretic raises hyperkalemia risk",
        "management": "Monitor potassium and kidney function closely.",
    },
    _pair("simvastatin", "gemfibrozil"): {
        "severity": CONTRAINDICATED,
        "description": "Gemfibrozil sharply raises simvastatin levels and the risk of rhabdomyolysis",
        "management": "Do not combine. Ask the prescriber about an alternative lipid therapy.",
    },
    _pair("atorvastatin", "clarithromycin"): {
        "severity": MAJOR,
        "description": "Clarithromycin increases atorvastatin levels, raising myopathy risk",
        "management": "Consider pausing the statin during the antibiotic course.",
    },
    _pair("atorvastatin", "azithromycin"): {
        "severity": MODERATE,
        "description": "Azithromycin may increase atorvastatin levels, raising risk of muscle problems",
        "management": "Watch for muscle pain, weakness, or dark urine. Short-term use generally acceptable.",
    },
    _pair("simvastatin", "fluconazole"): {
        "severity": MAJOR,
        "description": "Fluconazole increases simvastatin levels",
        "management": "Consider dose reduction or a temporary pause of the statin.",
    },
    _pair("tramadol", "sertraline"): {
        "severity": MAJOR,
        "description": "Tramadol with an SSRI increases the risk of serotonin syndrome",
        "management": "Watch for agitation, confusion, rapid heart rate and fever.",
    },
    _pair("tramadol", "fluoxetine"): {
        "severity": MAJOR,
        "description": "Tramadol with an SSRI increases the risk of serotonin syndrome",
        "management": "Monitor closely; consider alternative pain relief.",
    },
    _pair("sertraline", "fluoxetine"): {
        "severity": MAJOR,
        "description": "Combining two SSRIs increases risk of serotonin syndrome",
        "management": "Do not take together. Requires washout period when switching between SSRIs.",
    },
    _pair("fluoxetine", "ibuprofen"): {
        "severity": MODERATE,
        "description": "SSRIs like fluoxetine combined with NSAIDs increase gastrointestinal bleeding risk",
        "management": "Consider alternative pain relief. If NSAIDs are needed, take with food.",
    },
    _pair("alprazolam", "tramadol"): {
        "severity": MAJOR,
        "description": "Benzodiazepine with an opioid causes additive CNS and respiratory depression",
        "management": "Avoid if possible; overdose risk is substantially increased.",
    },
    _pair("diazepam", "morphine"): {
        "severity": CONTRAINDICATED,
        "description": "Benzodiazepine with an opioid can cause fatal respiratory depression",
        "management": "Only under close medical supervision.",
    },
    _pair("alprazolam", "alcohol"): {
        "severity": MAJOR,
        "description": "Combining benzodiazepines like alprazolam with alcohol is dangerous and potentially deadly",
        "management": "Avoid alcohol completely while taking alprazolam.",
    },
    _pair("metformin", "alcohol"): {
        "severity": MODERATE,
        "description": "Alcohol consumption with metformin can increase risk of lactic acidosis",
        "management": "Avoid excessive alcohol consumption and binge drinking.",
    },
    _pair("lithium", "ibuprofen"): {
        "severity": MAJOR,
        "description": "NSAIDs increase lithium levels",
        "management": "Monitor lithium closely; use acetaminophen instead.",
    },
    _pair("lithium", "lisinopril"): {
        "severity": MAJOR,
        "description": "ACE inhibitors increase lithium levels",
        "management": "Requires frequent lithium level monitoring.",
    },
    _pair("digoxin", "amiodarone"): {
        "severity": MAJOR,
        "description": "Amiodarone increases digoxin levels",
        "management": "Digoxin dose typically needs reduction; monitor levels.",
    },
    _pair("amiodarone", "azithromycin"): {
        "severity": CONTRAINDICATED,
        "description": "Both drugs prolong the QT interval; high risk of dangerous arrhythmias",
        "management": "Avoid combination.",
    },
    _pair("methotrexate", "ibuprofen"): {
        "severity": MAJOR,
        "description": "NSAIDs reduce methotrexate clearance, increasing toxicity",
        "management": "Avoid NSAIDs while on methotrexate.",
    },
    _pair("methotrexate", "cotrimoxazole"): {
        "severity": CONTRAINDICATED,
        "description": "Both are folate antagonists; severe bone marrow suppression risk",
        "management": "Avoid combination.",
    },
    _pair("glyburide", "ciprofloxacin"): {
        "severity": MAJOR,
        "description": "Fluoroquinolones can cause severe hypoglycemia with sulfonylureas",
        "management": "Monitor blood sugar closely; dose adjustment may be needed.",
    },
    _pair("lisinopril", "albuterol"): {
        "severity": MINOR,
        "description": "Albuterol may slightly increase heart rate and blood pressure",
        "management": "Usually not clinically significant. Monitor blood pressure if using albuterol frequently.",
    },
}


# Drug classes whose members interact with each other.
CLASS_INTERACTIONS = {
    "nsaid": {
        "severity": MAJOR,
        "description": "Multiple NSAIDs increase GI bleeding and kidney injury risk",
        "management": "Use only one NSAID.",
    },
    "serotonergic": {
        "severity": MAJOR,
        "description": "Multiple serotonergic drugs increase the risk of serotonin syndrome",
        "management": "Monitor for agitation, tremor, fever and rapid heart rate.",
    },
    "qt_prolonging": {
        "severity": MAJOR,
        "description": "Multiple QT-prolonging drugs increase arrhythmia risk",
        "management": "ECG monitoring recommended.",
    },
    "cns_depressant": {
        "severity": MAJOR,
        "description": "Multiple CNS depressants increase sedation and respiratory depression risk",
        "management": "Avoid combining without medical supervision.",
    },
}

# Classes contraindicated in pregnancy regardless of the letter category.
PREGNANCY_CONTRAINDICATED_CLASSES = {
    "ace_inhibitor": "can cause serious fetal kidney damage",
    "arb": "can cause serious fetal harm including kidney damage",
    "statin": "is contraindicated in pregnancy",
}

_PARENTHETICAL = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_DOSE = re.compile(
    r"\b\d+(?:[.,]\d+)?\s*(?:mg|mcg|µg|ug|g|ml|iu|units?|%|meq)\b(?:\s*/\s*\d*\s*(?:ml|tab|dose))?",
    re.IGNORECASE,
)
_FORMS = re.compile(
    r"\b(?:tablets?|tabs?|capsules?|caps?|syrup|suspension|injection|inj|cream|"
    r"ointment|drops|inhaler|er|xr|sr|xl|cr|od|bd|bid|tds|tid|qd|prn|daily|once|twice)\b"
)
_NON_WORD = re.compile(r"[^a-z0-9+ ]+")
_NUMBERS = re.compile(r"\b\d+(?:\.\d+)?\b")


def clean_drug_name(name: str) -> str:
    """Lowercase and strip dose, form and punctuation from a medication entry."""
    cleaned = _PARENTHETICAL.sub(" ", name.lower())
    cleaned = _DOSE.sub(" ", cleaned)
    cleaned = _NON_WORD.sub(" ", cleaned)
    cleaned = _FORMS.sub(" ", cleaned)
    cleaned = _NUMBERS.sub(" ", cleaned)
    return " ".join(cleaned.split())


def normalize_drug_name(name: str) -> Tuple[str, bool]:
    """
    Normalize a medication name to its generic form.

    Args:
        name: Medication as entered (brand or generic, may include dose)

    Returns:
        (normalized name, recognized). Unknown names come back cleaned but
        otherwise unchanged.
    """
    cleaned = clean_drug_name(name)
    generic = DRUG_NAME_MAPPING.get(cleaned, cleaned)
    if generic not in DRUG_CATALOG:
        # "amoxicillin clavulanate" style entries: try the first word
        first = cleaned.split(" ", 1)[0] if cleaned else cleaned
        generic_first = DRUG_NAME_MAPPING.get(first, first)
        if generic_first in DRUG_CATALOG:
            generic = generic_first
    return generic, generic in DRUG_CATALOG


def _drug_classes(drug: str) -> Tuple[str, ...]:
    return DRUG_CATALOG.get(drug, {}).get("classes", ())


def _pair_findings(drug_a: str, drug_b: str) -> List[InteractionFinding]:
    if drug_a == drug_b:
        return [
            InteractionFinding(
                drug_a=drug_a,
                drug_b=drug_b,
                severity=MODERATE,
                kind=FindingKind.DUPLICATION,
                rationale=f"{drug_a} appears more than once (therapeutic duplication)",
                management="Confirm with the prescriber whether duplicate therapy is intentional.",
            )
        ]

    interaction = INTERACTIONS.get(_pair(drug_a, drug_b))
    if interaction:
        return [
            InteractionFinding(
                drug_a=drug_a,
                drug_b=drug_b,
                severity=interaction["severity"],
                rationale=interaction["description"],
                management=interaction["management"],
            )
        ]

    findings = []
    shared = set(_drug_classes(drug_a)) & set(_drug_classes(drug_b))
    for drug_class, rule in CLASS_INTERACTIONS.items():
        if drug_class in shared:
            findings.append(
                InteractionFinding(
                    drug_a=drug_a,
                    drug_b=drug_b,
                    severity=rule["severity"],
                    rationale=rule["description"],
                    management=rule["management"],
                )
            )
    return findings


def _pregnancy_finding(drug: str) -> Optional[InteractionFinding]:
    entry = DRUG_CATALOG.get(drug)
    if not entry:
        return None

    for drug_class, reason in PREGNANCY_CONTRAINDICATED_CLASSES.items():
        if drug_class in entry["classes"]:
            return InteractionFinding(
                drug_a=drug,
                drug_b="pregnancy",
                severity=CONTRAINDICATED,
                kind=FindingKind.PREGNANCY,
                rationale=f"{drug} {reason}",
                management="Must be stopped in pregnancy; contact the prescriber promptly.",
            )

    category = entry["pregnancy_category"]
    if category == "X":
        return InteractionFinding(
            drug_a=drug,
            drug_b="pregnancy",
            severity=CONTRAINDICATED,
            kind=FindingKind.PREGNANCY,
            rationale=f"{drug} is pregnancy category X and known to cause fetal harm",
            management="Contraindicated in pregnancy. Seek urgent clinician guidance.",
        )
    if category == "D" or "nsaid" in entry["classes"]:
        return InteractionFinding(
            drug_a=drug,
            drug_b="pregnancy",
            severity=MAJOR,
            kind=FindingKind.PREGNANCY,
            rationale=f"{drug} has evidence of fetal risk",
            management="Discuss safer alternatives with your doctor.",
        )
    return None


def overall_risk(findings: Iterable[InteractionFinding]) -> OverallRisk:
    """Highest finding severity, or ``none`` when there are no findings."""
    worst = max((f.severity for f in findings), key=lambda s: s.rank, default=None)
    if worst is None:
        return OverallRisk.NONE
    return OverallRisk(worst.value)


def check_prescription(request: PrescriptionRequest) -> PrescriptionReport:
    """
    Screen a new prescription against current medications.

    With a new prescription, each current medication is paired with it.
    Without one, every pair of current medications is checked.

    Args:
        request: Current medications, optional new prescription, pregnancy flag

    Returns:
        PrescriptionReport with findings, overall risk, normalized names and
        unrecognized inputs
    """
    current: List[str] = []
    unrecognized: List[str] = []
    for med in request.current_meds:
        if not med or not med.strip():
            continue
        name, recognized = normalize_drug_name(med)
        if recognized:
            current.append(name)
        else:
            unrecognized.append(med)

    # Unrecognized names take no part in pairing, duplication or pregnancy checks
    has_candidate = bool(request.new_prescription and request.new_prescription.strip())
    candidate: Optional[str] = None
    if has_candidate:
        name, recognized = normalize_drug_name(request.new_prescription)
        if recognized:
            candidate = name
        else:
            unrecognized.append(request.new_prescription)

    if candidate is not None:
        pairs = [(existing, candidate) for existing in current]
        all_drugs = current + [candidate]
    elif has_candidate:
        pairs = []
        all_drugs = list(current)
    else:
        pairs = list(combinations(current, 2))
        all_drugs = list(current)

    findings: List[InteractionFinding] = []
    for drug_a, drug_b in pairs:
        findings.extend(_pair_findings(drug_a, drug_b))

    if request.pregnant:
        seen = set()
        for drug in all_drugs:
            if drug in seen:
                continue
            seen.add(drug)
            finding = _pregnancy_finding(drug)
            if finding:
                findings.append(finding)

    risk = overall_risk(findings)
    logger.info(
        f"Prescription check: {len(all_drugs)} medications, "
        f"{len(findings)} findings, overall risk {risk.value}"
    )
    return PrescriptionReport(
        findings=findings,
        overall_risk=risk,
        normalized=all_drugs,
        unrecognized=unrecognized,
    )
