from copywriting.compliance import ComplianceResult, check_compliance
from copywriting.shaping import shape_title, string_width
from copywriting.terms import TermDictionary, TermsPatch, apply_terms, unprotect
