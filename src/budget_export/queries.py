"""
GraphQL documents sent to the Keystone ``/api/graphql`` endpoint.

The field list of PROPOSAL_BATCH_QUERY defines exactly which proposal
attributes are available to ``transforms.proposals.flatten_proposal``.
"""

OPERATION_NAME = "BudgetDataExporter"

PROPOSAL_COUNT_QUERY = """
query ProposalCount($where: ProposalWhereInput) {
  proposalsCount(where: $where)
}
"""

PROPOSAL_BATCH_QUERY = """
query ProposalBatch($take: Int!, $skip: Int!, $where: ProposalWhereInput) {
  proposals(orderBy: { id: asc }, take: $take, skip: $skip, where: $where) {
    id
    publishStatus
    proposalTypes
    result
    reductionAmount
    freezeAmount
    reason
    description
    budgetImageUrl
    budgetMajorCategory
    budgetMediumCategory
    budgetMinorCategory
    budgetProjectName
    budgetType
    budgetYear
    budgetAmount
    year { id year }
    government { id name category }
    meetings { id displayName }
    proposers { id name type }
    coSigners { id name type }
    budget {
      id
      projectName
      projectDescription
      majorCategory
      mediumCategory
      minorCategory
      type
      budgetAmount
      year
      budgetUrl
    }
    historicalProposals { id }
    mergedProposals { id }
    historicalParentProposals { id }
    mergedParentProposals { id }
  }
}
"""
