"""
Isolation parameters.

The keys follow the names used in detector-simulation cards (DeltaRMax,
PTRatioMax, ...). Snake-case names are accepted as well, which is what the
tests and interactive sessions use.
"""

from pydantic import BaseModel, ConfigDict, Field

from src.analysis.selection import SelectionMode, selection_mode


class IsolationConfig(BaseModel):
    """Immutable configuration of one isolation pass."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    # a zero cone keeps only objects coincident with the candidate
    delta_r_max: float = Field(0.5, alias="DeltaRMax")

    # |eta| < 1.488 uses (p0, p1), the endcap uses (p0_ee, p1_ee)
    iso_p0: float = Field(2.6, alias="Iso_p0")
    iso_p1: float = Field(0.0, alias="Iso_p1")
    iso_p0_ee: float = Field(2.3, alias="Iso_p0_ee")
    iso_p1_ee: float = Field(0.0, alias="Iso_p1_ee")

    pt_ratio_max: float = Field(0.1, alias="PTRatioMax")
    pt_sum_max: float = Field(5.0, alias="PTSumMax")

    use_pt_sum: bool = Field(False, alias="UsePTSum")
    use_loose_id: bool = Field(False, alias="UseLooseID")
    use_rho_correction: bool = Field(True, alias="UseRhoCorrection")

    # a negative threshold keeps every isolation object
    pt_min: float = Field(0.5, alias="PTMin")

    isolation_input_array: str = Field("Delphes/partons", alias="IsolationInputArray")
    candidate_input_array: str = Field("Calorimeter/electrons", alias="CandidateInputArray")
    rho_input_array: str = Field("", alias="RhoInputArray")
    output_array: str = Field("electrons", alias="OutputArray")

    @property
    def selection_mode(self) -> SelectionMode:
        return selection_mode(self.use_pt_sum, self.use_loose_id)

    @property
    def has_rho_input(self) -> bool:
        return self.rho_input_array != ""
