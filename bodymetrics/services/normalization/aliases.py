"""Curated synonym tables for metric labels and units.

Alias keys are stored in normalized label form (lower-case, punctuation
stripped, separators collapsed to ``_``) so they can be looked up directly
with the output of ``normalize_label``. Targets are catalog keys; an alias
whose target is missing from the live catalog is ignored.
"""

METRIC_ALIASES = {
    # Weight
    "body_weight": "weight",
    "bodyweight": "weight",
    "mass": "weight",
    "waga": "weight",
    "masa_ciała": "weight",
    "masa_ciala": "weight",
    "peso": "weight",

    # Height
    "body_height": "height",
    "stature": "height",
    "wzrost": "height",

    # BMI
    "body_mass_index": "bmi",

    # Body fat
    "body_fat_percentage": "body_fat_percent",
    "body_fat": "body_fat_percent",
    "fat_percentage": "body_fat_percent",
    "bodyfat": "body_fat_percent",
    "pbf": "body_fat_percent",
    "percent_body_fat": "body_fat_percent",
    "procent_tkanki_tłuszczowej": "body_fat_percent",
    "tkanka_tłuszczowa": "body_fat_percent",
    "body_fat_kg": "body_fat_mass",
    "fat_mass": "body_fat_mass",
    "masa_tłuszczu": "body_fat_mass",
    "masa_tkanki_tłuszczowej": "body_fat_mass",

    # Muscle / lean mass
    "smm": "skeletal_muscle_mass",
    "muscle_mass": "skeletal_muscle_mass",
    "masa_mięśniowa": "skeletal_muscle_mass",
    "masa_miesniowa": "skeletal_muscle_mass",
    "masa_mięśni_szkieletowych": "skeletal_muscle_mass",
    "lbm": "lean_body_mass",
    "beztłuszczowa_masa_ciała": "fat_free_mass",
    "ffm": "fat_free_mass",

    # Visceral fat
    "visceral_fat": "visceral_fat_level",
    "visceral_fat_area": "visceral_fat_level",
    "vfl": "visceral_fat_level",
    "tłuszcz_trzewny": "visceral_fat_level",
    "tluszcz_trzewny": "visceral_fat_level",
    "poziom_tłuszczu_trzewnego": "visceral_fat_level",

    # Water
    "tbw": "total_body_water",
    "body_water": "total_body_water",
    "woda_całkowita": "total_body_water",
    "woda_calkowita": "total_body_water",
    "całkowita_woda_w_organizmie": "total_body_water",
    "icw": "intracellular_water",
    "woda_wewnątrzkomórkowa": "intracellular_water",
    "ecw": "extracellular_water",
    "woda_zewnątrzkomórkowa": "extracellular_water",
    "ecw_tbw": "ecw_ratio",
    "ecw_tbw_ratio": "ecw_ratio",

    # Energy
    "bmr": "basal_metabolic_rate",
    "podstawowa_przemiana_materii": "basal_metabolic_rate",
    "whr": "waist_hip_ratio",
    "waist_to_hip_ratio": "waist_hip_ratio",

    # Segmental lean mass
    "prawa_ręka": "segmental_lean_mass_right_arm",
    "right_arm": "segmental_lean_mass_right_arm",
    "lewa_ręka": "segmental_lean_mass_left_arm",
    "left_arm": "segmental_lean_mass_left_arm",
    "tułów": "segmental_lean_mass_trunk",
    "trunk": "segmental_lean_mass_trunk",
    "prawa_noga": "segmental_lean_mass_right_leg",
    "right_leg": "segmental_lean_mass_right_leg",
    "lewa_noga": "segmental_lean_mass_left_leg",
    "left_leg": "segmental_lean_mass_left_leg",

    # Blood pressure
    "systolic_blood_pressure": "blood_pressure_systolic",
    "diastolic_blood_pressure": "blood_pressure_diastolic",
    "systolic": "blood_pressure_systolic",
    "diastolic": "blood_pressure_diastolic",
    "blood_pressure_sys": "blood_pressure_systolic",
    "blood_pressure_dia": "blood_pressure_diastolic",
    "pulse": "heart_rate",
    "resting_heart_rate": "heart_rate",
    "tętno": "heart_rate",

    # Lipids
    "total_cholesterol": "cholesterol_total",
    "cholesterol": "cholesterol_total",
    "cholesterol_całkowity": "cholesterol_total",
    "hdl_cholesterol": "cholesterol_hdl",
    "ldl_cholesterol": "cholesterol_ldl",
    "hdl": "cholesterol_hdl",
    "ldl": "cholesterol_ldl",
    "triglyceride": "triglycerides",
    "trójglicerydy": "triglycerides",

    # Glucose
    "blood_glucose": "glucose",
    "blood_sugar": "glucose",
    "fasting_glucose": "glucose",
    "glukoza": "glucose",

    # Blood count
    "hb": "hemoglobin",
    "hgb": "hemoglobin",
    "hemoglobina": "hemoglobin",
    "hct": "hematocrit",
    "hematokryt": "hematocrit",
    "white_blood_cell_count": "wbc_count",
    "white_blood_cells": "wbc_count",
    "wbc": "wbc_count",
    "leukocytes": "wbc_count",
    "leukocyty": "wbc_count",
    "red_blood_cell_count": "rbc_count",
    "red_blood_cells": "rbc_count",
    "rbc": "rbc_count",
    "erythrocytes": "rbc_count",
    "erytrocyty": "rbc_count",
    "platelets": "platelet_count",
    "thrombocytes": "platelet_count",
    "plt": "platelet_count",
    "płytki_krwi": "platelet_count",
    "basophile_count": "basophil_count",
    "basophils": "basophil_count",
    "basophile_number": "basophil_count",
    "basophile": "basophil_count",
    "eosinophile_count": "eosinophil_count",
    "neutrophile_count": "neutrophil_count",
    "lymphocyte": "lymphocyte_count",
    "monocyte": "monocyte_count",
}

# Token-level expansions applied before fuzzy comparison
ABBREVIATIONS = {
    "hb": "hemoglobin",
    "hgb": "hemoglobin",
    "hct": "hematocrit",
    "wbc": "white_blood_cell",
    "rbc": "red_blood_cell",
    "plt": "platelet",
    "sys": "systolic",
    "dia": "diastolic",
    "bmi": "body_mass_index",
    "hdl": "cholesterol_hdl",
    "ldl": "cholesterol_ldl",
    "tg": "triglycerides",
    "tc": "cholesterol_total",
    "pct": "percent",
}

# Recognised unit spellings mapped to one canonical token per unit
UNIT_ALIASES = {
    # percentage
    "%": "%",
    "percent": "%",
    "pct": "%",
    # mass
    "kg": "kg",
    "kgs": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "g": "g",
    "lb": "lb",
    "lbs": "lb",
    # length
    "cm": "cm",
    "m": "m",
    "mm": "mm",
    "in": "in",
    # volume
    "l": "l",
    "litre": "l",
    "liter": "l",
    "liters": "l",
    "ml": "ml",
    # energy
    "kcal": "kcal",
    "cal": "kcal",
    "kj": "kj",
    # index / score
    "kg/m2": "kg/m2",
    "kg/m^2": "kg/m2",
    "kg/m²": "kg/m2",
    "level": "level",
    "lvl": "level",
    "ratio": "ratio",
    "points": "points",
    "pts": "points",
    "score": "points",
    "grade": "grade",
    "Ω": "ohm",
    "ω": "ohm",
    "ohm": "ohm",
    # pressure / rate
    "mmhg": "mmhg",
    "bpm": "bpm",
    "/min": "bpm",
    # concentration
    "mg/dl": "mg/dl",
    "mmol/l": "mmol/l",
    "g/dl": "g/dl",
    "g/l": "g/l",
    "ng/ml": "ng/ml",
    "pg/ml": "pg/ml",
    "µg/dl": "ug/dl",
    "ug/dl": "ug/dl",
    "miu/l": "miu/l",
    "uiu/ml": "miu/l",
    "µiu/ml": "miu/l",
    "u/l": "u/l",
    "iu/l": "u/l",
    # counts
    "x10^3/ul": "x10^3/ul",
    "10^3/ul": "x10^3/ul",
    "x10^9/l": "x10^3/ul",
    "10^9/l": "x10^3/ul",
    "x10^6/ul": "x10^6/ul",
    "10^6/ul": "x10^6/ul",
    "x10^12/l": "x10^6/ul",
    "10^12/l": "x10^6/ul",
    "fl": "fl",
    "pg": "pg",
}


def canonical_unit(unit: str) -> str:
    """Return the canonical unit token, or ``""`` when the unit is unknown."""
    cleaned = (unit or "").strip().lower().replace(" ", "")
    return UNIT_ALIASES.get(cleaned, "")
